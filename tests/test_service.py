"""Tests for the local service record."""

import logging

import pytest

from localshare.discovery import ErrorKind, ProviderError, ServiceRecord
from localshare.discovery.errors import NAME_CONFLICT_CODE
from localshare.discovery.provider import hton_port


@pytest.fixture
def record(identity, provider):
    return ServiceRecord(identity, provider, "_localshare._tcp")


class TestServiceRecord:
    """Tests for ServiceRecord."""

    @pytest.mark.asyncio
    async def test_register_publishes_name(self, identity, provider, record):
        """Test a successful registration sets the published name."""
        record.start()
        await record.wait()

        assert provider.registrations == [("alice@host1", "_localshare._tcp", hton_port(5000))]
        assert identity.published_name == "alice@host1"
        assert record.granted_name == "alice@host1"
        assert not record.terminated

    @pytest.mark.asyncio
    async def test_provider_renamed(self, identity, provider, record):
        """Test the granted name is published when it differs."""
        provider.register_result = "alice@host1 (2)"

        record.start()
        await record.wait()

        assert identity.published_name == "alice@host1 (2)"

    @pytest.mark.asyncio
    async def test_name_conflict(self, identity, provider, record, caplog):
        """Test a conflict is logged and leaves nothing published."""
        provider.register_result = ProviderError.from_code(NAME_CONFLICT_CODE)

        with caplog.at_level(logging.CRITICAL):
            record.start()
            await record.wait()

        assert record.terminated
        assert record.error.kind is ErrorKind.NAME_CONFLICT
        assert identity.published_name == ""
        assert "name conflict" in caplog.text

    @pytest.mark.asyncio
    async def test_close_clears_published_name(self, identity, provider, record):
        """Test closing unregisters and clears the published name."""
        record.start()
        await record.wait()

        await record.close()

        assert provider.unregistrations == ["alice@host1"]
        assert identity.published_name == ""
        assert record.granted_name == ""

    @pytest.mark.asyncio
    async def test_close_tolerates_unregister_failure(self, identity, provider, record, caplog):
        """Test an unregister error is only a warning."""
        provider.unregister_error = ProviderError(ErrorKind.SERVICE_NOT_RUNNING)
        record.start()
        await record.wait()

        with caplog.at_level(logging.WARNING):
            await record.close()

        assert identity.published_name == ""
        assert "service not running" in caplog.text

    @pytest.mark.asyncio
    async def test_close_after_failure(self, identity, provider, record):
        """Test closing a failed record does not unregister."""
        provider.register_result = ProviderError.from_code(NAME_CONFLICT_CODE)
        record.start()
        await record.wait()

        await record.close()

        assert provider.unregistrations == []
        assert identity.published_name == ""
