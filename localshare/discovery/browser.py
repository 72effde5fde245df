"""Service browser maintaining the set of discovered peers."""

import asyncio
import logging

from .errors import ContractViolation, ProviderError
from .identity import LocalIdentity
from .peer import DiscoveredPeer
from .provider import BrowseEvent, BrowseEventKind, DiscoveryProvider, HostnameResolver
from .resolver import Resolver
from .signals import Signal

logger = logging.getLogger(__name__)


class Browser:
    """Browses for other instances and keeps a de-duplicated peer set.

    The local instance is never reported as a peer. Starts browsing on
    start(), stops and drops every peer and in-flight resolver on close().

    Signals:
        peer_added(peer): a new peer finished resolving.
        peer_removed(service_name): a known peer went away.
    """

    def __init__(
        self,
        identity: LocalIdentity,
        provider: DiscoveryProvider,
        hostname_resolver: HostnameResolver,
        service_type: str,
        domain: str = "local",
    ):
        self.service_type = service_type
        self.domain = domain
        self._identity = identity
        self._provider = provider
        self._hostname_resolver = hostname_resolver
        self._peers: dict[str, DiscoveredPeer] = {}
        self._resolvers: set[Resolver] = set()
        self._former_local_name = ""
        self._task: asyncio.Task | None = None
        self._fatal: ContractViolation | None = None

        self.peer_added = Signal("peer_added")
        self.peer_removed = Signal("peer_removed")

        identity.published_name_changed.connect(self._on_published_name_changed)

    @property
    def peers(self) -> list[DiscoveredPeer]:
        return list(self._peers.values())

    @property
    def pending_resolvers(self) -> int:
        return len(self._resolvers)

    def get(self, service_name: str) -> DiscoveredPeer | None:
        return self._peers.get(service_name)

    def start(self) -> None:
        """Subscribe to the provider's browse stream."""
        self._task = asyncio.create_task(self._browse(), name=f"browse:{self.service_type}")

    async def wait(self) -> None:
        """Wait until browsing stops.

        Raises:
            ContractViolation: A collaborator broke its contract and the
                browser was aborted.
        """
        if self._task is not None:
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if self._fatal is None or not self._task.cancelled():
                    raise
        if self._fatal is not None:
            raise self._fatal

    async def close(self) -> None:
        """Stop browsing, cancel every resolver and forget all peers."""
        self._identity.published_name_changed.disconnect(self._on_published_name_changed)
        tasks = [self._task] if self._task is not None else []
        if self._task is not None:
            self._task.cancel()
        for resolver in list(self._resolvers):
            resolver.cancel()
            if resolver.task is not None:
                tasks.append(resolver.task)
        self._resolvers.clear()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._peers.clear()
        self._former_local_name = ""
        logger.info("Service browsing stopped")

    async def _browse(self) -> None:
        try:
            async for event in self._provider.browse(self.service_type):
                self.handle_event(event)
        except ProviderError as e:
            logger.critical(f"Browsing for {self.service_type} failed: {e}")

    def handle_event(self, event: BrowseEvent) -> None:
        """Apply one add/remove notification from the provider."""
        if event.kind is BrowseEventKind.ADDED:
            self._spawn_resolver(event)
        else:
            self._remove(event.service_name)

    def _spawn_resolver(self, event: BrowseEvent) -> None:
        resolver = Resolver(
            event,
            self.service_type,
            self.domain,
            self._provider,
            self._hostname_resolver,
            on_resolved=self._on_peer_resolved,
        )
        self._resolvers.add(resolver)
        task = resolver.start()
        task.add_done_callback(lambda t: self._on_resolver_done(resolver, t))

    def _on_resolver_done(self, resolver: Resolver, task: asyncio.Task) -> None:
        self._resolvers.discard(resolver)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, ContractViolation):
            logger.critical(f"Aborting discovery: {exc}")
            self._abort(exc)
        else:
            logger.error(f"Resolver for {resolver.event.service_name} crashed", exc_info=exc)

    def _abort(self, exc: ContractViolation) -> None:
        self._fatal = exc
        for resolver in list(self._resolvers):
            resolver.cancel()
        self._resolvers.clear()
        if self._task is not None:
            self._task.cancel()

    def _on_peer_resolved(self, peer: DiscoveredPeer) -> None:
        name = peer.service_name
        existing = self._peers.get(name)
        if existing is not None:
            logger.debug(f"Peer {name} re-announced, updating endpoint")
            existing.update_from(peer)
        elif name == self._identity.published_name:
            logger.debug(f"Ignoring local instance {name}")
        else:
            self._peers[name] = peer
            logger.info(f"Discovered peer: {peer.username} ({name}) at {peer.address}:{peer.port}")
            self.peer_added.emit(peer)

    def _remove(self, service_name: str) -> None:
        peer = self._peers.pop(service_name, None)
        if peer is not None:
            logger.info(f"Peer removed: {peer.username} ({service_name})")
            self.peer_removed.emit(service_name)
        elif service_name in (self._former_local_name, self._identity.published_name):
            # Goodbye for our own record (sent on every rename), not a lost peer
            if service_name == self._former_local_name:
                self._former_local_name = ""
            logger.debug(f"Local instance {service_name} withdrawn")
        else:
            logger.warning(f"Removal of unknown peer {service_name} ignored")

    def _on_published_name_changed(self, previous: str, current: str) -> None:
        if not previous:
            return
        self._former_local_name = previous
        if previous in self._peers:
            del self._peers[previous]
            logger.info(f"Evicted stale entry for local instance {previous}")
            self.peer_removed.emit(previous)
