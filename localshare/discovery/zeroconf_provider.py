"""DiscoveryProvider implementation backed by python-zeroconf."""

import asyncio
import logging
import socket
from collections.abc import AsyncIterator

from zeroconf import (
    BadTypeInNameException,
    Error as ZeroconfError,
    NonUniqueNameException,
    NotRunningException,
    ServiceNameAlreadyRegistered,
    ServiceStateChange,
    Zeroconf,
)
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from .errors import TIMEOUT_CODE, ErrorKind, ProviderError
from .provider import (
    ANY_INTERFACE,
    BrowseEvent,
    BrowseEventKind,
    DiscoveryProvider,
    ResolveResult,
    hton_port,
    ntoh_port,
)

logger = logging.getLogger(__name__)


def provider_error_from(exc: BaseException) -> ProviderError:
    """Map a zeroconf or socket exception onto the provider taxonomy."""
    if isinstance(exc, (NonUniqueNameException, ServiceNameAlreadyRegistered)):
        kind = ErrorKind.NAME_CONFLICT
    elif isinstance(exc, BadTypeInNameException):
        kind = ErrorKind.BAD_PARAMETER
    elif isinstance(exc, NotRunningException):
        kind = ErrorKind.SERVICE_NOT_RUNNING
    elif isinstance(exc, PermissionError):
        kind = ErrorKind.FIREWALL
    elif isinstance(exc, MemoryError):
        kind = ErrorKind.OUT_OF_MEMORY
    else:
        kind = ErrorKind.UNKNOWN
    code = exc.errno if isinstance(exc, OSError) else None
    return ProviderError(kind, code, str(exc) or type(exc).__name__)


def _type_name(service_type: str, domain: str) -> str:
    return f"{service_type}.{domain}."


def _instance_name(full_name: str, type_name: str) -> str:
    """Strip the service type from a fully qualified service name."""
    suffix = f".{type_name}"
    if full_name.endswith(suffix):
        return full_name[: -len(suffix)]
    return full_name


class ZeroconfProvider(DiscoveryProvider):
    """Registers, browses and resolves services over mDNS with zeroconf."""

    def __init__(
        self,
        zeroconf: AsyncZeroconf | None = None,
        domain: str = "local",
        resolve_timeout_ms: int = 3000,
    ):
        """Initialize the provider.

        Args:
            zeroconf: Existing AsyncZeroconf to use. One is created (and owned)
                on start() when omitted.
            domain: mDNS domain used for registration and browsing.
            resolve_timeout_ms: Upper bound for a single resolve request.
        """
        self.domain = domain
        self.resolve_timeout_ms = resolve_timeout_ms
        self._aiozc = zeroconf
        self._owns_zeroconf = zeroconf is None
        self._registered: dict[str, AsyncServiceInfo] = {}
        self._browsers: set[AsyncServiceBrowser] = set()

    @property
    def zeroconf(self) -> Zeroconf:
        if self._aiozc is None:
            raise ProviderError(ErrorKind.SERVICE_NOT_RUNNING, detail="provider not started")
        return self._aiozc.zeroconf

    async def start(self) -> None:
        if self._aiozc is None:
            try:
                self._aiozc = AsyncZeroconf()
            except (ZeroconfError, OSError) as e:
                raise provider_error_from(e) from e
        logger.info("Zeroconf provider started")

    async def close(self) -> None:
        for browser in list(self._browsers):
            await browser.async_cancel()
        self._browsers.clear()

        if self._aiozc is None:
            return
        if self._registered:
            await self._aiozc.async_unregister_all_services()
            self._registered.clear()
        if self._owns_zeroconf:
            await self._aiozc.async_close()
            self._aiozc = None
        logger.info("Zeroconf provider closed")

    async def register(self, name: str, service_type: str, port: int) -> str:
        type_name = _type_name(service_type, self.domain)
        try:
            hostname = socket.gethostname().split(".")[0]
            local_ip = socket.gethostbyname(hostname)
            info = AsyncServiceInfo(
                type_name,
                f"{name}.{type_name}",
                addresses=[socket.inet_aton(local_ip)],
                port=ntoh_port(port),
                server=f"{hostname}.{self.domain}.",
            )
            await self._aiozc_or_fail().async_register_service(info, allow_name_change=True)
        except (ZeroconfError, OSError) as e:
            raise provider_error_from(e) from e

        granted = _instance_name(info.name, type_name)
        self._registered[granted] = info
        logger.debug(f"Registered {info.name} at {local_ip}:{info.port}")
        return granted

    async def unregister(self, name: str, service_type: str) -> None:
        info = self._registered.pop(name, None)
        if info is None:
            logger.debug(f"Unregister of unknown service {name} ignored")
            return
        try:
            await self._aiozc_or_fail().async_unregister_service(info)
        except (ZeroconfError, OSError) as e:
            raise provider_error_from(e) from e

    async def browse(self, service_type: str) -> AsyncIterator[BrowseEvent]:
        type_name = _type_name(service_type, self.domain)
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[BrowseEvent] = asyncio.Queue()

        def on_state_change(
            zeroconf: Zeroconf,
            service_type: str,
            name: str,
            state_change: ServiceStateChange,
        ) -> None:
            if state_change is ServiceStateChange.Removed:
                kind = BrowseEventKind.REMOVED
            else:
                # Updated re-resolves so the endpoint is refreshed in place
                kind = BrowseEventKind.ADDED
            event = BrowseEvent(kind, _instance_name(name, type_name), ANY_INTERFACE)
            loop.call_soon_threadsafe(queue.put_nowait, event)

        try:
            browser = AsyncServiceBrowser(self.zeroconf, type_name, handlers=[on_state_change])
        except (ZeroconfError, OSError) as e:
            raise provider_error_from(e) from e
        self._browsers.add(browser)
        logger.info(f"Browsing for {type_name} services")

        try:
            while True:
                yield await queue.get()
        finally:
            if browser in self._browsers:
                self._browsers.discard(browser)
                await browser.async_cancel()

    async def resolve(
        self, service_name: str, service_type: str, domain: str, interface_id: int
    ) -> ResolveResult:
        type_name = _type_name(service_type, domain)
        info = AsyncServiceInfo(type_name, f"{service_name}.{type_name}")
        try:
            found = await info.async_request(self.zeroconf, self.resolve_timeout_ms)
        except (ZeroconfError, OSError) as e:
            raise provider_error_from(e) from e

        if not found or not info.server or info.port is None:
            raise ProviderError.from_code(
                TIMEOUT_CODE, f"no answer for {service_name} within {self.resolve_timeout_ms}ms"
            )
        return ResolveResult(hostname=info.server.rstrip("."), port=hton_port(info.port))

    def _aiozc_or_fail(self) -> AsyncZeroconf:
        if self._aiozc is None:
            raise ProviderError(ErrorKind.SERVICE_NOT_RUNNING, detail="provider not started")
        return self._aiozc
