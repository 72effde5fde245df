"""Local identity and the ``username@suffix`` service naming scheme."""

import logging
import random
import socket
import time

from .signals import Signal

logger = logging.getLogger(__name__)

SEPARATOR = "@"


def service_name_of(username: str, suffix: str) -> str:
    """Build the published service name for a user on a host."""
    return f"{username}{SEPARATOR}{suffix}"


def username_of(service_name: str) -> str:
    """Recover the username from a service name.

    Everything after the last ``@`` is dropped. Names without ``@`` come from
    older publishers and are returned unchanged.
    """
    username, separator, _ = service_name.rpartition(SEPARATOR)
    return username if separator else service_name


def make_suffix(hostname: str | None = None, rng: random.Random | None = None) -> str:
    """Derive the disambiguating suffix for this process.

    Args:
        hostname: Local host name. Defaults to ``socket.gethostname()``; only
            the first label is kept.
        rng: Random source for the fallback token. A time-seeded one is
            created when omitted.

    Returns:
        The short host name, or a numeric token if no host name is available.
    """
    if hostname is None:
        hostname = socket.gethostname()
    hostname = hostname.split(".")[0]
    if hostname:
        return hostname

    if rng is None:
        rng = random.Random(time.time_ns())
    token = str(rng.randrange(2**31))
    logger.warning(f"No local host name available, using suffix {token}")
    return token


class LocalIdentity:
    """Who this instance is: user-chosen name, suffix and listening port.

    Signals:
        requested_name_changed(requested_name): username was changed.
        published_name_changed(previous, current): the provider-granted name
            was set or cleared.
        username_changed(username): the username part of the published name
            changed.
    """

    def __init__(self, username: str, port: int, suffix: str | None = None, rng: random.Random | None = None):
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port: {port}")
        self._username = username
        self._suffix = suffix if suffix else make_suffix(rng=rng)
        self._port = port
        self._published_name = ""

        self.requested_name_changed = Signal("requested_name_changed")
        self.published_name_changed = Signal("published_name_changed")
        self.username_changed = Signal("username_changed")

    @property
    def username(self) -> str:
        return self._username

    @property
    def suffix(self) -> str:
        return self._suffix

    @property
    def port(self) -> int:
        return self._port

    @property
    def requested_name(self) -> str:
        return service_name_of(self._username, self._suffix)

    @property
    def published_name(self) -> str:
        """Name granted by the provider, empty while nothing is registered."""
        return self._published_name

    def set_username(self, username: str) -> None:
        if username == self._username:
            return
        logger.info(f"Username changed from {self._username!r} to {username!r}")
        self._username = username
        self.requested_name_changed.emit(self.requested_name)

    def set_published_name(self, name: str) -> None:
        previous = self._published_name
        old_username = username_of(previous) if previous else ""
        new_username = username_of(name) if name else ""

        if name != previous:
            self._published_name = name
            self.published_name_changed.emit(previous, name)
        # A suffix-only change keeps the username
        if new_username != old_username:
            self.username_changed.emit(new_username)

    def __repr__(self) -> str:
        return (
            f"LocalIdentity(requested={self.requested_name!r}, "
            f"published={self._published_name!r}, port={self._port})"
        )
