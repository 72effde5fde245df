"""Discovered remote peer record."""

from typing import Any

from .identity import username_of
from .signals import Signal


class DiscoveredPeer:
    """One remote instance, keyed by its service name.

    The endpoint fields are updated in place on re-resolution; every actual
    change emits ``changed(peer)``.
    """

    def __init__(self, service_name: str, hostname: str = "", port: int = 0, address: str = ""):
        self._service_name = service_name
        self._hostname = hostname
        self._port = port
        self._address = address
        self.changed = Signal("peer_changed")

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def username(self) -> str:
        return username_of(self._service_name)

    @property
    def hostname(self) -> str:
        return self._hostname

    @hostname.setter
    def hostname(self, value: str) -> None:
        if value != self._hostname:
            self._hostname = value
            self.changed.emit(self)

    @property
    def port(self) -> int:
        return self._port

    @port.setter
    def port(self, value: int) -> None:
        if value != self._port:
            self._port = value
            self.changed.emit(self)

    @property
    def address(self) -> str:
        return self._address

    @address.setter
    def address(self, value: str) -> None:
        if value != self._address:
            self._address = value
            self.changed.emit(self)

    def update_from(self, other: "DiscoveredPeer") -> None:
        """Copy the endpoint of a fresher resolution of the same peer."""
        self.hostname = other.hostname
        self.port = other.port
        self.address = other.address

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_name": self._service_name,
            "username": self.username,
            "hostname": self._hostname,
            "port": self._port,
            "address": self._address,
        }

    def __repr__(self) -> str:
        return f"DiscoveredPeer({self._service_name!r}, {self._address}:{self._port})"
