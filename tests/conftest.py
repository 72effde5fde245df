"""In-memory discovery collaborators shared by the tests."""

import asyncio

import pytest

from localshare.discovery import (
    BrowseEvent,
    BrowseEventKind,
    DiscoveryProvider,
    HostLookupError,
    HostnameResolver,
    LocalIdentity,
    ProviderError,
    ResolveResult,
)
from localshare.discovery.provider import hton_port


class FakeProvider(DiscoveryProvider):
    """Provider whose answers are scripted by the test."""

    def __init__(self):
        self.started = False
        self.closed = False
        self.registrations: list[tuple[str, str, int]] = []
        self.unregistrations: list[str] = []
        self.resolve_calls: list[str] = []
        self.register_result: str | ProviderError | None = None
        self.register_gate: asyncio.Event | None = None
        self.unregister_error: ProviderError | None = None
        self.resolve_results: dict[str, ResolveResult | ProviderError] = {}
        self.resolve_gates: dict[str, asyncio.Event] = {}
        self.events: asyncio.Queue = asyncio.Queue()

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def register(self, name: str, service_type: str, port: int) -> str:
        self.registrations.append((name, service_type, port))
        if self.register_gate is not None:
            await self.register_gate.wait()
        result = self.register_result
        if isinstance(result, ProviderError):
            raise result
        return result or name

    async def unregister(self, name: str, service_type: str) -> None:
        self.unregistrations.append(name)
        if self.unregister_error is not None:
            raise self.unregister_error

    async def browse(self, service_type: str):
        while True:
            event = await self.events.get()
            if isinstance(event, ProviderError):
                raise event
            yield event

    async def resolve(self, service_name, service_type, domain, interface_id) -> ResolveResult:
        self.resolve_calls.append(service_name)
        gate = self.resolve_gates.get(service_name)
        if gate is not None:
            await gate.wait()
        result = self.resolve_results[service_name]
        if isinstance(result, ProviderError):
            raise result
        return result

    def answer(self, service_name: str, hostname: str, port: int) -> None:
        """Script a successful resolve (port given in host order)."""
        self.resolve_results[service_name] = ResolveResult(hostname, hton_port(port))


class FakeHostnameResolver(HostnameResolver):
    """Hostname resolver with scripted answers and optional gating."""

    def __init__(self):
        self.answers: dict[str, list[str] | HostLookupError] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []
        self.cancelled: list[str] = []

    async def resolve(self, hostname: str) -> list[str]:
        self.calls.append(hostname)
        gate = self.gates.get(hostname)
        if gate is not None:
            try:
                await gate.wait()
            except asyncio.CancelledError:
                self.cancelled.append(hostname)
                raise
        answer = self.answers[hostname]
        if isinstance(answer, HostLookupError):
            raise answer
        return list(answer)


async def settle(rounds: int = 10) -> None:
    """Let pending tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def added(name: str) -> BrowseEvent:
    return BrowseEvent(BrowseEventKind.ADDED, name)


def removed(name: str) -> BrowseEvent:
    return BrowseEvent(BrowseEventKind.REMOVED, name)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def hostnames():
    return FakeHostnameResolver()


@pytest.fixture
def identity():
    return LocalIdentity("alice", 5000, suffix="host1")
