"""Error taxonomy for the discovery subsystem.

Provider failures are mapped from native DNS-SD error codes (or from the
exceptions raised by the zeroconf library) onto a small closed set of kinds so
that callers can log them in a categorized, human-readable form.
"""

from enum import Enum


class ErrorKind(Enum):
    """Categories of service-discovery provider failures."""

    OUT_OF_MEMORY = "out of memory"
    BAD_PARAMETER = "bad parameter"
    NAME_CONFLICT = "name conflict"
    UNSUPPORTED = "unsupported"
    FIREWALL = "blocked by firewall"
    INCOMPATIBLE = "incompatible provider"
    SERVICE_NOT_RUNNING = "service not running"
    UNKNOWN = "unknown error"


# DNS-SD (dns_sd.h) error codes
NATIVE_ERROR_CODES: dict[int, ErrorKind] = {
    -65539: ErrorKind.OUT_OF_MEMORY,
    -65540: ErrorKind.BAD_PARAMETER,
    -65544: ErrorKind.UNSUPPORTED,
    -65548: ErrorKind.NAME_CONFLICT,
    -65549: ErrorKind.INCOMPATIBLE,
    -65551: ErrorKind.FIREWALL,
    -65563: ErrorKind.SERVICE_NOT_RUNNING,
}

NAME_CONFLICT_CODE = -65548
TIMEOUT_CODE = -65568


class DiscoveryError(Exception):
    """Base class for discovery failures."""


class ProviderError(DiscoveryError):
    """A register, browse or resolve call failed inside the provider."""

    def __init__(self, kind: ErrorKind, code: int | None = None, detail: str = ""):
        self.kind = kind
        self.code = code
        self.detail = detail
        super().__init__(str(self))

    @classmethod
    def from_code(cls, code: int, detail: str = "") -> "ProviderError":
        """Build an error from a native DNS-SD error code."""
        return cls(NATIVE_ERROR_CODES.get(code, ErrorKind.UNKNOWN), code, detail)

    def __str__(self) -> str:
        text = self.kind.value
        if self.code is not None:
            text = f"{text} (code {self.code})"
        if self.detail:
            text = f"{text}: {self.detail}"
        return text


class HostLookupError(DiscoveryError):
    """Hostname to address resolution failed."""

    def __init__(self, hostname: str, reason: str):
        self.hostname = hostname
        self.reason = reason
        super().__init__(f"lookup of {hostname} failed: {reason}")


class ContractViolation(DiscoveryError):
    """A collaborator broke its contract (e.g. success with no addresses).

    This is not recoverable: the discovery run is aborted instead of producing
    inconsistent state.
    """
