"""Boundary of the external service-discovery provider and hostname resolver.

Ports crossing the provider boundary are in network byte order.
"""

import asyncio
import logging
import socket
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum

from .errors import HostLookupError

logger = logging.getLogger(__name__)

ANY_INTERFACE = 0


def hton_port(port: int) -> int:
    """Host to network byte order for a 16-bit port."""
    return socket.htons(port)


def ntoh_port(port: int) -> int:
    """Network to host byte order for a 16-bit port."""
    return socket.ntohs(port)


class BrowseEventKind(Enum):
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class BrowseEvent:
    """A peer appeared or disappeared on the network."""

    kind: BrowseEventKind
    service_name: str
    interface_id: int = ANY_INTERFACE


@dataclass(frozen=True)
class ResolveResult:
    """Contact info of a resolved service (port in network byte order)."""

    hostname: str
    port: int


class DiscoveryProvider(ABC):
    """Multicast-DNS-like register/browse/resolve primitives.

    Failures are reported by raising ``ProviderError``.
    """

    async def start(self) -> None:
        """Acquire provider resources."""

    async def close(self) -> None:
        """Release provider resources."""

    @abstractmethod
    async def register(self, name: str, service_type: str, port: int) -> str:
        """Publish a service.

        Args:
            name: Desired instance name.
            service_type: Service type, e.g. "_localshare._tcp".
            port: Listening port in network byte order.

        Returns:
            The name actually granted, which may differ on conflict.
        """

    @abstractmethod
    async def unregister(self, name: str, service_type: str) -> None:
        """Withdraw a previously granted service name."""

    @abstractmethod
    def browse(self, service_type: str) -> AsyncIterator[BrowseEvent]:
        """Stream add/remove events for a service type."""

    @abstractmethod
    async def resolve(
        self, service_name: str, service_type: str, domain: str, interface_id: int
    ) -> ResolveResult:
        """Resolve a service name to its hostname and port."""


class HostnameResolver(ABC):
    """Asynchronous hostname to address resolution."""

    @abstractmethod
    async def resolve(self, hostname: str) -> list[str]:
        """Return the addresses of ``hostname`` in preference order.

        Raises:
            HostLookupError: If the lookup failed.
        """


class SystemHostnameResolver(HostnameResolver):
    """Resolves hostnames with the operating system resolver."""

    def __init__(self, family: int = socket.AF_UNSPEC):
        self.family = family

    async def resolve(self, hostname: str) -> list[str]:
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(
                hostname, None, family=self.family, type=socket.SOCK_STREAM
            )
        except socket.gaierror as e:
            raise HostLookupError(hostname, e.strerror or str(e)) from e

        addresses: list[str] = []
        for _family, _type, _proto, _canonname, sockaddr in infos:
            address = sockaddr[0]
            if address not in addresses:
                addresses.append(address)
        logger.debug(f"Resolved {hostname} to {addresses}")
        return addresses
