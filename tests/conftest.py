from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import pytest

from sppctl.core.errors import ChannelNotFoundError
from sppctl.core.model import ChannelInfo, PeripheralDescriptor


@dataclass
class FakeEndpoint:
    address: str
    channel: str


class FakeBackend:
    """In-memory backend: `advertise` is replayed into the cache on every scan start."""

    name = "fake"

    def __init__(self, advertise: list[PeripheralDescriptor] | None = None) -> None:
        self.advertise = list(advertise or [])
        self.started = 0
        self.stopped = 0
        self.connect_calls: list[tuple[str, str]] = []
        self.writes: list[tuple[FakeEndpoint, bytes]] = []
        self.disconnects: list[FakeEndpoint] = []
        self.start_error: Exception | None = None
        self.connect_error: Exception | None = None
        self.write_error: Exception | None = None
        self.disconnect_error: Exception | None = None
        self._on_observed: Callable[[PeripheralDescriptor], None] | None = None
        self._on_lost: Callable[[str], None] | None = None

    def bind(self, on_observed, on_lost) -> None:
        self._on_observed = on_observed
        self._on_lost = on_lost

    def observe(self, descriptor: PeripheralDescriptor) -> None:
        assert self._on_observed is not None
        self._on_observed(descriptor)

    def lose(self, address: str) -> None:
        assert self._on_lost is not None
        self._on_lost(address)

    async def start_scan(self) -> None:
        self.started += 1
        if self.start_error is not None:
            raise self.start_error
        for descriptor in self.advertise:
            self.observe(descriptor)

    async def stop_scan(self) -> None:
        self.stopped += 1

    async def connect(self, descriptor: PeripheralDescriptor, channel: str) -> FakeEndpoint:
        self.connect_calls.append((descriptor.address, channel))
        if self.connect_error is not None:
            raise self.connect_error
        if channel not in {c.channel for c in descriptor.channels}:
            raise ChannelNotFoundError(f"Channel {channel} cannot be found on {descriptor.address}")
        return FakeEndpoint(address=descriptor.address, channel=channel)

    async def write(self, endpoint: FakeEndpoint, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((endpoint, data))

    async def disconnect(self, endpoint: FakeEndpoint) -> None:
        self.disconnects.append(endpoint)
        if self.disconnect_error is not None:
            raise self.disconnect_error


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self._when = when
        self.callback = callback
        self.cancelled = False

    def when(self) -> float:
        return self._when

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Injected sleep/call_later pair that runs on virtual time."""

    def __init__(self) -> None:
        self.elapsed = 0.0
        self.calls: list[float] = []
        self._timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.elapsed + delay, callback)
        self._timers.append(timer)
        return timer

    def at(self, when: float, callback: Callable[[], None]) -> None:
        self._timers.append(FakeTimer(when, callback))

    async def sleep(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.elapsed += seconds
        due = sorted(
            (t for t in self._timers if t.when() <= self.elapsed),
            key=lambda t: t.when(),
        )
        for timer in due:
            self._timers.remove(timer)
            if not timer.cancelled:
                timer.callback()
        await asyncio.sleep(0)


def printer(address: str = "AA:BB:CC:DD:EE:FF", channel: str = "FFF1", name: str = "Receipt Printer") -> PeripheralDescriptor:
    return PeripheralDescriptor(
        address=address,
        name=name,
        channels=(ChannelInfo(channel=channel, name="SPP"),),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(advertise=[printer()])
