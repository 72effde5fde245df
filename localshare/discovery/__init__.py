"""mDNS/Zeroconf peer discovery for LocalShare."""

from .browser import Browser
from .errors import ContractViolation, DiscoveryError, ErrorKind, HostLookupError, ProviderError
from .identity import LocalIdentity, make_suffix, service_name_of, username_of
from .manager import DiscoveryManager
from .peer import DiscoveredPeer
from .provider import (
    BrowseEvent,
    BrowseEventKind,
    DiscoveryProvider,
    HostnameResolver,
    ResolveResult,
    SystemHostnameResolver,
)
from .resolver import Resolver, ResolverState
from .service import ServiceRecord
from .signals import Signal

__all__ = [
    "Browser",
    "BrowseEvent",
    "BrowseEventKind",
    "ContractViolation",
    "DiscoveredPeer",
    "DiscoveryError",
    "DiscoveryManager",
    "DiscoveryProvider",
    "ErrorKind",
    "HostLookupError",
    "HostnameResolver",
    "LocalIdentity",
    "ProviderError",
    "ResolveResult",
    "Resolver",
    "ResolverState",
    "ServiceRecord",
    "Signal",
    "SystemHostnameResolver",
    "make_suffix",
    "service_name_of",
    "username_of",
]
