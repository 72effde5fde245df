"""Announcement of the local instance."""

import asyncio
import logging

from .errors import ProviderError
from .identity import LocalIdentity
from .provider import DiscoveryProvider, hton_port

logger = logging.getLogger(__name__)


class ServiceRecord:
    """Publishes a LocalIdentity and stores the name the provider grants.

    Registers on start() and unregisters on close(). A registration failure
    is logged and ends this record; there is no retry. The owner creates a
    new record when the username changes, keeping at most one alive.

    The provider may truncate or rename the requested name; the granted name
    ends up in ``identity.published_name``.
    """

    def __init__(self, identity: LocalIdentity, provider: DiscoveryProvider, service_type: str):
        self.service_type = service_type
        self._identity = identity
        self._provider = provider
        self._granted_name = ""
        self._task: asyncio.Task | None = None
        self.error: ProviderError | None = None

    @property
    def granted_name(self) -> str:
        return self._granted_name

    @property
    def terminated(self) -> bool:
        """True once registration failed."""
        return self.error is not None

    def start(self) -> asyncio.Task:
        self._task = asyncio.create_task(
            self._register(), name=f"register:{self._identity.requested_name}"
        )
        return self._task

    async def wait(self) -> None:
        """Wait for the registration attempt to finish."""
        if self._task is not None:
            await self._task

    async def _register(self) -> None:
        requested = self._identity.requested_name
        try:
            granted = await self._provider.register(
                requested, self.service_type, hton_port(self._identity.port)
            )
        except ProviderError as e:
            self.error = e
            logger.critical(f"Registration of {requested} failed: {e}")
            return

        if granted != requested:
            logger.warning(f"Provider renamed {requested} to {granted}")
        self._granted_name = granted
        logger.info(f"Announcing {granted} on port {self._identity.port}")
        self._identity.set_published_name(granted)

    async def close(self) -> None:
        """Withdraw the record and clear the published name."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)

        if self._granted_name:
            try:
                await self._provider.unregister(self._granted_name, self.service_type)
            except ProviderError as e:
                logger.warning(f"Unregistration of {self._granted_name} failed: {e}")
            logger.info(f"Service announcement {self._granted_name} stopped")
            self._granted_name = ""
        self._identity.set_published_name("")
