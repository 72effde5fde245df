"""Short-lived query turning a "peer appeared" event into a DiscoveredPeer.

Steps:
- resolve the service name with the provider (hostname, port)
- look the hostname up
- pick the first address and report the filled peer

Failures drop the peer without retrying; a later announcement of the same
peer starts a fresh Resolver.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable

from .errors import ContractViolation, HostLookupError, ProviderError
from .peer import DiscoveredPeer
from .provider import BrowseEvent, DiscoveryProvider, HostnameResolver, ntoh_port

logger = logging.getLogger(__name__)


class ResolverState(Enum):
    QUERYING = "querying"
    AWAITING_HOSTNAME = "awaiting_hostname"
    COMPLETED = "completed"
    FAILED = "failed"


class Resolver:
    """Resolves one browsed service and reports it through ``on_resolved``."""

    def __init__(
        self,
        event: BrowseEvent,
        service_type: str,
        domain: str,
        provider: DiscoveryProvider,
        hostname_resolver: HostnameResolver,
        on_resolved: Callable[[DiscoveredPeer], None],
    ):
        self.event = event
        self.service_type = service_type
        self.domain = domain
        self.peer = DiscoveredPeer(event.service_name)
        self.state = ResolverState.QUERYING
        self._provider = provider
        self._hostname_resolver = hostname_resolver
        self._on_resolved = on_resolved
        self._task: asyncio.Task | None = None

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    @property
    def finished(self) -> bool:
        return self.state in (ResolverState.COMPLETED, ResolverState.FAILED)

    def start(self) -> asyncio.Task:
        """Issue the resolve query. Returns the task carrying the query."""
        self._task = asyncio.create_task(
            self._run(), name=f"resolve:{self.event.service_name}"
        )
        return self._task

    def cancel(self) -> None:
        """Abort the query, including an outstanding hostname lookup."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        name = self.event.service_name
        try:
            result = await self._provider.resolve(
                name, self.service_type, self.domain, self.event.interface_id
            )
            self.peer.port = ntoh_port(result.port)
            self.peer.hostname = result.hostname
            self.state = ResolverState.AWAITING_HOSTNAME

            addresses = await self._hostname_resolver.resolve(self.peer.hostname)
        except ProviderError as e:
            logger.warning(f"Resolve of {name} failed: {e}")
            self.state = ResolverState.FAILED
            return
        except HostLookupError as e:
            logger.warning(f"Address lookup for {name} failed: {e}")
            self.state = ResolverState.FAILED
            return
        except asyncio.CancelledError:
            logger.debug(f"Resolve of {name} cancelled in state {self.state.value}")
            self.state = ResolverState.FAILED
            raise

        if not addresses:
            self.state = ResolverState.FAILED
            raise ContractViolation(
                f"hostname lookup of {self.peer.hostname} succeeded with no addresses"
            )

        self.peer.address = addresses[0]
        self.state = ResolverState.COMPLETED
        logger.debug(f"Resolved {name} to {self.peer.address}:{self.peer.port}")
        self._on_resolved(self.peer)
