"""High-level coordinator for announcing and browsing."""

import asyncio
import logging

from ..config import Config
from .browser import Browser
from .identity import LocalIdentity
from .peer import DiscoveredPeer
from .provider import DiscoveryProvider, HostnameResolver, SystemHostnameResolver
from .service import ServiceRecord
from .signals import Signal

logger = logging.getLogger(__name__)


class DiscoveryManager:
    """Owns the local identity, its ServiceRecord and the Browser.

    A username change tears the current ServiceRecord down and publishes a
    new one; rebuilds are serialized so at most one record is alive.
    """

    def __init__(
        self,
        identity: LocalIdentity,
        provider: DiscoveryProvider,
        hostname_resolver: HostnameResolver | None = None,
        service_type: str = "_localshare._tcp",
        domain: str = "local",
        announce: bool = True,
        browse: bool = True,
    ):
        """Initialize the discovery manager.

        Args:
            identity: Identity of this instance.
            provider: Service-discovery provider.
            hostname_resolver: Hostname lookup service. Defaults to the system
                resolver.
            service_type: mDNS service type.
            domain: mDNS domain.
            announce: Whether to announce this instance.
            browse: Whether to browse for other instances.
        """
        self.identity = identity
        self.service_type = service_type
        self.announce = announce
        self._provider = provider
        self._record: ServiceRecord | None = None
        self._record_lock = asyncio.Lock()
        self._republish_task: asyncio.Task | None = None
        self._running = False
        self._stopped = asyncio.Event()

        self.peer_added = Signal("peer_added")
        self.peer_removed = Signal("peer_removed")

        self._browser: Browser | None = None
        if browse:
            self._browser = Browser(
                identity,
                provider,
                hostname_resolver or SystemHostnameResolver(),
                service_type,
                domain,
            )
            self._browser.peer_added.connect(self.peer_added.emit)
            self._browser.peer_removed.connect(self.peer_removed.emit)

        identity.requested_name_changed.connect(self._on_requested_name_changed)

    @classmethod
    def from_config(cls, config: Config) -> "DiscoveryManager":
        """Build a zeroconf-backed manager from configuration.

        With discovery disabled the manager neither announces nor browses.
        """
        from .zeroconf_provider import ZeroconfProvider

        identity = LocalIdentity(
            config.node.username, config.node.port, suffix=config.node.suffix
        )
        provider = ZeroconfProvider(
            domain=config.discovery.domain,
            resolve_timeout_ms=config.discovery.resolve_timeout_ms,
        )
        return cls(
            identity,
            provider,
            service_type=config.discovery.service_type,
            domain=config.discovery.domain,
            announce=config.discovery.enabled and config.discovery.announce,
            browse=config.discovery.enabled and config.discovery.browse,
        )

    @property
    def record(self) -> ServiceRecord | None:
        return self._record

    def peers(self) -> list[DiscoveredPeer]:
        if not self._browser:
            return []
        return self._browser.peers

    async def start(self) -> None:
        """Start discovery (announce + browse)."""
        await self._provider.start()
        self._running = True

        if self.announce:
            async with self._record_lock:
                self._record = ServiceRecord(self.identity, self._provider, self.service_type)
                self._record.start()

        if self._browser:
            self._browser.start()

        logger.info(f"Discovery manager started as {self.identity.requested_name}")

    async def rename(self, username: str) -> None:
        """Change the username and wait for it to be republished."""
        self.identity.set_username(username)
        if self._republish_task is not None:
            await self._republish_task

    async def wait(self) -> None:
        """Wait until browsing ends, or until stop() when not browsing.

        Re-raises a fatal ContractViolation.
        """
        if self._browser:
            await self._browser.wait()
        else:
            await self._stopped.wait()

    async def stop(self) -> None:
        """Stop discovery."""
        self._running = False
        self._stopped.set()
        self.identity.requested_name_changed.disconnect(self._on_requested_name_changed)

        if self._browser:
            await self._browser.close()

        if self._republish_task is not None:
            await asyncio.gather(self._republish_task, return_exceptions=True)
        async with self._record_lock:
            if self._record is not None:
                await self._record.close()
                self._record = None

        await self._provider.close()
        logger.info("Discovery manager stopped")

    def _on_requested_name_changed(self, requested_name: str) -> None:
        if not (self._running and self.announce):
            return
        self._republish_task = asyncio.create_task(self._republish(self._republish_task))

    async def _republish(self, previous: asyncio.Task | None) -> None:
        if previous is not None:
            await asyncio.gather(previous, return_exceptions=True)
        async with self._record_lock:
            if self._record is not None:
                await self._record.close()
                self._record = None
            if not self._running:
                return
            logger.info(f"Republishing as {self.identity.requested_name}")
            self._record = ServiceRecord(self.identity, self._provider, self.service_type)
            self._record.start()
            await self._record.wait()
