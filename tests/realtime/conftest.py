"""Realtime test fixtures: in-memory transport and manual clock.

FakeTransport satisfies the Transport capability without any network; tests
drive its callbacks explicitly (simulate_open, simulate_message, ...).
FakeScheduler records timers and fires them when advance() moves its clock.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import pytest

from tradestream.realtime.client import StreamClient
from tradestream.realtime.connection import ConnectionManager
from tradestream.realtime.events import EventBus


class FakeTransport:
    """Transport double that records opens, sends and closes."""

    def __init__(self, fail_on_open: Exception | None = None) -> None:
        self.on_open = None
        self.on_message = None
        self.on_error = None
        self.on_close = None
        self.url: str | None = None
        self.sent: list[str] = []
        self.closed = False
        self._fail_on_open = fail_on_open

    def open(self, url: str) -> None:
        if self._fail_on_open is not None:
            raise self._fail_on_open
        self.url = url

    def send(self, data: str) -> None:
        self.sent.append(data)

    def close(self) -> None:
        # Completes the close handshake immediately
        self.closed = True
        self.simulate_close()

    # ─── Test drivers ───

    def simulate_open(self) -> None:
        self.on_open()

    def simulate_message(self, frame: str | bytes) -> None:
        self.on_message(frame)

    def simulate_error(self, exc: Exception) -> None:
        self.on_error(exc)

    def simulate_close(self) -> None:
        self.on_close()

    def sent_json(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]


class FakeTimer:
    def __init__(self, when: float, delay: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock implementing the Scheduler capability."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    @property
    def delays(self) -> list[float]:
        """Delay in seconds of every timer ever scheduled, in order."""
        return [t.delay for t in self.timers]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in deadline order."""
        target = self.now + seconds
        while True:
            due = sorted((t for t in self.pending if t.when <= target), key=lambda t: t.when)
            if not due:
                break
            timer = due[0]
            self.now = timer.when
            timer.fired = True
            timer.callback()
        self.now = target


class TransportFactory:
    """Callable factory handing out a new FakeTransport per connect()."""

    def __init__(self) -> None:
        self.created: list[FakeTransport] = []
        self.fail_next: Exception | None = None

    def __call__(self) -> FakeTransport:
        transport = FakeTransport(fail_on_open=self.fail_next)
        self.fail_next = None
        self.created.append(transport)
        return transport

    @property
    def latest(self) -> FakeTransport:
        return self.created[-1]


STREAM_URL = "ws://localhost:3000/ws"


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def transports() -> TransportFactory:
    return TransportFactory()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def conn(transports: TransportFactory, scheduler: FakeScheduler, bus: EventBus) -> ConnectionManager:
    """A ConnectionManager wired to fakes, not yet connected."""
    return ConnectionManager(STREAM_URL, transports, scheduler, bus)


@pytest.fixture
def recorder():
    """Factory for listeners that append their payloads to a list."""

    def make() -> tuple[list, Callable]:
        calls: list = []
        return calls, calls.append

    return make


@pytest.fixture
def client(transports: TransportFactory, scheduler: FakeScheduler) -> StreamClient:
    """A StreamClient wired to fakes, not yet connected."""
    return StreamClient(STREAM_URL, transport_factory=transports, scheduler=scheduler)
