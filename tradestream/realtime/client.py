"""Dashboard-facing realtime stream client.

Wires ConnectionManager, SubscriptionRegistry, MessageRouter and EventBus
into one explicitly constructed object. Transport, scheduler and backoff
parameters are injected, so tests run against fakes and nothing is shared
between instances.

Usage:
    from tradestream.realtime.client import StreamClient

    client = StreamClient.from_settings()
    client.on("price_update", update_price_display)
    client.on("trade_update", add_trade_to_table)
    client.connect()
    client.subscribe(["btcusdt", "ethusdt"])
    ...
    client.disconnect()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from tradestream.common.config import Settings, get_settings
from tradestream.common.logging import get_logger
from tradestream.realtime.connection import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_DELAY_MS,
    ConnectionManager,
)
from tradestream.realtime.endpoint import build_stream_url
from tradestream.realtime.events import EventBus, Listener
from tradestream.realtime.models import (
    STATUS_BY_STATE,
    ConnectionState,
    OutboundCommand,
)
from tradestream.realtime.router import MessageRouter
from tradestream.realtime.subscriptions import SubscriptionRegistry
from tradestream.realtime.transport import (
    AsyncioScheduler,
    Scheduler,
    TimerHandle,
    Transport,
    WebsocketsTransport,
)

logger = get_logger("STREAM")


class StreamClient:
    """Realtime client keeping dashboard views in sync with the API server.

    Args:
        url: WebSocket endpoint (see build_stream_url).
        transport_factory: Returns a fresh Transport per connection attempt.
            Defaults to WebsocketsTransport.
        scheduler: Timer capability. Defaults to AsyncioScheduler.
        base_delay_ms: First reconnect delay.
        max_delay_ms: Reconnect delay cap.
        ping_interval: Seconds between keepalive pings while connected;
            0 disables them.
    """

    def __init__(
        self,
        url: str,
        transport_factory: Callable[[], Transport] | None = None,
        scheduler: Scheduler | None = None,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
        ping_interval: float = 0.0,
    ) -> None:
        self._scheduler = scheduler or AsyncioScheduler()
        self._ping_interval = ping_interval
        self._ping_timer: TimerHandle | None = None

        self.bus = EventBus()
        self.router = MessageRouter(self.bus)
        self.connection = ConnectionManager(
            url,
            transport_factory or WebsocketsTransport,
            self._scheduler,
            self.bus,
            frame_handler=self.router.route,
            base_delay_ms=base_delay_ms,
            max_delay_ms=max_delay_ms,
        )
        self.subscriptions = SubscriptionRegistry(self.connection.send)

        # Replay must go out before `connected` listeners run
        self.connection.add_open_hook(self.subscriptions.replay)
        self.connection.add_open_hook(self._start_keepalive)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        **overrides: Any,
    ) -> StreamClient:
        """Build a client from application settings.

        Args:
            settings: Settings to use; defaults to get_settings().
            **overrides: Constructor arguments that take precedence.
        """
        settings = settings or get_settings()
        url = settings.stream_url or build_stream_url(
            settings.stream_origin,
            port=settings.stream_port,
            path=settings.stream_path,
        )
        kwargs: dict[str, Any] = {
            "transport_factory": lambda: WebsocketsTransport(
                open_timeout=settings.open_timeout_seconds,
            ),
            "base_delay_ms": settings.reconnect_base_delay_ms,
            "max_delay_ms": settings.reconnect_max_delay_ms,
            "ping_interval": settings.ping_interval_seconds,
        }
        kwargs.update(overrides)
        return cls(url, **kwargs)

    @property
    def url(self) -> str:
        return self.connection.url

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    def status(self) -> str:
        """One of "connecting", "connected", "closing", "disconnected"."""
        return STATUS_BY_STATE[self.connection.state]

    # ─── Connection ───

    def connect(self) -> None:
        """Open the stream and keep it open until disconnect().

        With the default AsyncioScheduler this must be called inside a
        running event loop.

        Raises:
            RuntimeError: If the asyncio scheduler is in use and no loop is
                running. Connection state is left untouched.
        """
        if isinstance(self._scheduler, AsyncioScheduler):
            asyncio.get_running_loop()
        self.connection.connect()

    def disconnect(self) -> None:
        """Close the stream and stop reconnecting. Subscriptions are kept."""
        self._stop_keepalive()
        self.connection.disconnect()

    # ─── Outbound ───

    def subscribe(self, topics: str | Iterable[str]) -> None:
        self.subscriptions.subscribe(topics)

    def unsubscribe(self, topics: str | Iterable[str]) -> None:
        self.subscriptions.unsubscribe(topics)

    def unsubscribe_all(self) -> None:
        self.subscriptions.unsubscribe_all()

    def send(self, command: OutboundCommand | Mapping[str, Any]) -> bool:
        """Send a command now, or drop it with a warning if not connected.

        Raises:
            pydantic.ValidationError: If a mapping is not a valid command.
        """
        if not isinstance(command, OutboundCommand):
            command = OutboundCommand.model_validate(dict(command))
        return self.connection.send(command)

    def ping(self) -> bool:
        return self.connection.send(OutboundCommand.ping())

    # ─── Listeners ───

    def on(self, event: str, handler: Listener) -> None:
        self.bus.on(event, handler)

    def off(self, event: str, handler: Listener) -> None:
        self.bus.off(event, handler)

    # ─── Keepalive ───

    def _start_keepalive(self) -> None:
        self._stop_keepalive()
        if self._ping_interval > 0:
            self._ping_timer = self._scheduler.call_later(self._ping_interval, self._keepalive_tick)

    def _keepalive_tick(self) -> None:
        self._ping_timer = None
        if self.connection.state is not ConnectionState.OPEN:
            return
        self.ping()
        self._ping_timer = self._scheduler.call_later(self._ping_interval, self._keepalive_tick)

    def _stop_keepalive(self) -> None:
        if self._ping_timer is not None:
            self._ping_timer.cancel()
            self._ping_timer = None
