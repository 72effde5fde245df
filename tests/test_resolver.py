"""Tests for the per-peer resolve query."""

import asyncio
import sys

import pytest

from localshare.discovery import (
    ContractViolation,
    ErrorKind,
    HostLookupError,
    ProviderError,
    ResolveResult,
    Resolver,
    ResolverState,
)

from conftest import added, settle


def make_resolver(provider, hostnames, name="bob@host2"):
    resolved = []
    resolver = Resolver(
        added(name), "_localshare._tcp", "local", provider, hostnames, on_resolved=resolved.append
    )
    return resolver, resolved


class TestResolver:
    """Tests for Resolver."""

    @pytest.mark.asyncio
    async def test_resolves_peer(self, provider, hostnames):
        """Test a successful resolve fills the peer."""
        provider.answer("bob@host2", "host2.local", 5000)
        hostnames.answers["host2.local"] = ["192.168.1.42", "fe80::1"]
        resolver, resolved = make_resolver(provider, hostnames)

        await resolver.start()

        assert resolver.state is ResolverState.COMPLETED
        assert len(resolved) == 1
        peer = resolved[0]
        assert peer.to_dict() == {
            "service_name": "bob@host2",
            "username": "bob",
            "hostname": "host2.local",
            "port": 5000,
            "address": "192.168.1.42",
        }

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.byteorder != "little", reason="literal assumes little-endian host")
    async def test_port_converted_from_network_order(self, provider, hostnames):
        """Test the raw 0x8813 network-order value is port 5000."""
        provider.resolve_results["bob@host2"] = ResolveResult("host2.local", 0x8813)
        hostnames.answers["host2.local"] = ["192.168.1.42"]
        resolver, resolved = make_resolver(provider, hostnames)

        await resolver.start()

        assert resolved[0].port == 5000

    @pytest.mark.asyncio
    async def test_provider_failure(self, provider, hostnames):
        """Test a resolve error drops the peer without raising."""
        provider.resolve_results["bob@host2"] = ProviderError(ErrorKind.UNKNOWN, -65568)
        resolver, resolved = make_resolver(provider, hostnames)

        await resolver.start()

        assert resolver.state is ResolverState.FAILED
        assert resolved == []
        assert hostnames.calls == []

    @pytest.mark.asyncio
    async def test_lookup_failure(self, provider, hostnames):
        """Test a hostname lookup error drops the peer without raising."""
        provider.answer("bob@host2", "host2.local", 5000)
        hostnames.answers["host2.local"] = HostLookupError("host2.local", "not found")
        resolver, resolved = make_resolver(provider, hostnames)

        await resolver.start()

        assert resolver.state is ResolverState.FAILED
        assert resolved == []

    @pytest.mark.asyncio
    async def test_empty_address_list_is_fatal(self, provider, hostnames):
        """Test success with no addresses raises instead of reporting."""
        provider.answer("bob@host2", "host2.local", 5000)
        hostnames.answers["host2.local"] = []
        resolver, resolved = make_resolver(provider, hostnames)

        with pytest.raises(ContractViolation):
            await resolver.start()

        assert resolver.state is ResolverState.FAILED
        assert resolved == []

    @pytest.mark.asyncio
    async def test_cancel_aborts_hostname_lookup(self, provider, hostnames):
        """Test cancelling mid-lookup aborts it and never reports."""
        provider.answer("bob@host2", "host2.local", 5000)
        hostnames.answers["host2.local"] = ["192.168.1.42"]
        gate = hostnames.gates["host2.local"] = asyncio.Event()
        resolver, resolved = make_resolver(provider, hostnames)

        task = resolver.start()
        await settle()
        assert resolver.state is ResolverState.AWAITING_HOSTNAME

        resolver.cancel()
        await asyncio.gather(task, return_exceptions=True)
        gate.set()
        await settle()

        assert task.cancelled()
        assert hostnames.cancelled == ["host2.local"]
        assert resolver.state is ResolverState.FAILED
        assert resolved == []

    @pytest.mark.asyncio
    async def test_cancel_while_querying(self, provider, hostnames):
        """Test cancelling before the provider answers skips the lookup."""
        provider.answer("bob@host2", "host2.local", 5000)
        provider.resolve_gates["bob@host2"] = asyncio.Event()
        resolver, resolved = make_resolver(provider, hostnames)

        task = resolver.start()
        await settle()
        assert resolver.state is ResolverState.QUERYING

        resolver.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert resolver.finished
        assert hostnames.calls == []
        assert resolved == []
