"""Connection lifecycle and reconnect policy for the realtime stream.

Owns the single ConnectionState and the transport currently in use.
Transitions:

    DISCONNECTED --connect()--> CONNECTING --open--> OPEN
    CONNECTING/OPEN --close or error--> DISCONNECTED, reconnect scheduled
    CONNECTING/OPEN --disconnect()--> CLOSING --close--> DISCONNECTED
    DISCONNECTED (reconnect pending) --disconnect()--> DISCONNECTED, timer cancelled

Every close schedules a reconnect unless disconnect() was called; the only
way to stay disconnected is an explicit disconnect(). Delay before the n-th
consecutive reconnect is min(base * 2^(n-1), max), and n resets to zero on
the next successful open.

Usage:
    from tradestream.realtime.connection import ConnectionManager

    conn = ConnectionManager(url, transport_factory, scheduler, bus)
    conn.connect()
    conn.send(OutboundCommand.ping())
    conn.disconnect()
"""

from __future__ import annotations

from collections.abc import Callable

from tradestream.common.exceptions import TransportError
from tradestream.common.logging import get_logger
from tradestream.common.metrics import (
    STREAM_COMMANDS_DROPPED_TOTAL,
    STREAM_COMMANDS_SENT_TOTAL,
    STREAM_CONNECTED,
    STREAM_RECONNECTS_TOTAL,
    STREAM_TRANSPORT_ERRORS_TOTAL,
)
from tradestream.realtime.events import EventBus
from tradestream.realtime.models import ConnectionState, OutboundCommand, StreamEvent
from tradestream.realtime.transport import Scheduler, TimerHandle, Transport

logger = get_logger("STREAM")

DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 30000


def backoff_delay_ms(
    attempt: int,
    base_ms: int = DEFAULT_BASE_DELAY_MS,
    max_ms: int = DEFAULT_MAX_DELAY_MS,
) -> int:
    """Delay before the given reconnect attempt (1-based), capped at max_ms."""
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    # Past this many doublings any positive base already exceeds max_ms
    if base_ms > 0 and attempt - 1 >= max_ms.bit_length():
        return max_ms
    return min(base_ms * 2 ** (attempt - 1), max_ms)


class ConnectionManager:
    """Single authoritative connection and its state machine.

    Args:
        url: WebSocket endpoint to connect to.
        transport_factory: Returns a fresh Transport for each open attempt.
        scheduler: Timer capability for reconnect delays.
        bus: EventBus receiving connected/disconnected/error events.
        frame_handler: Called with every inbound frame while connected.
        base_delay_ms: First reconnect delay.
        max_delay_ms: Reconnect delay cap.
    """

    def __init__(
        self,
        url: str,
        transport_factory: Callable[[], Transport],
        scheduler: Scheduler,
        bus: EventBus,
        frame_handler: Callable[[str | bytes], None] | None = None,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
    ) -> None:
        if base_delay_ms <= 0 or max_delay_ms < base_delay_ms:
            raise ValueError("Reconnect delays must satisfy 0 < base_delay_ms <= max_delay_ms")

        self.url = url
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

        self._transport_factory = transport_factory
        self._scheduler = scheduler
        self._bus = bus
        self._frame_handler = frame_handler
        self._open_hooks: list[Callable[[], None]] = []

        self._state = ConnectionState.DISCONNECTED
        self._transport: Transport | None = None
        self._reconnect_timer: TimerHandle | None = None
        self._attempts = 0
        self._stopped = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempts(self) -> int:
        """Consecutive reconnects scheduled since the last successful open."""
        return self._attempts

    @property
    def next_delay_ms(self) -> int:
        return backoff_delay_ms(self._attempts + 1, self.base_delay_ms, self.max_delay_ms)

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    def add_open_hook(self, hook: Callable[[], None]) -> None:
        """Run hook on every successful open, before `connected` is emitted."""
        self._open_hooks.append(hook)

    def set_frame_handler(self, handler: Callable[[str | bytes], None]) -> None:
        self._frame_handler = handler

    def connect(self) -> None:
        """Open the connection. No-op while CONNECTING or OPEN."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return

        self._stopped = False
        self._cancel_reconnect()

        transport = self._transport_factory()
        transport.on_open = lambda: self._handle_open(transport)
        transport.on_message = lambda frame: self._handle_message(transport, frame)
        transport.on_error = lambda exc: self._handle_error(transport, exc)
        transport.on_close = lambda: self._handle_close(transport)

        self._transport = transport
        self._state = ConnectionState.CONNECTING
        logger.info(
            "Connecting to stream",
            extra={"data": {"url": self.url, "attempt": self._attempts}},
        )

        try:
            transport.open(self.url)
        except Exception as exc:
            # Treat a synchronous open failure like an error followed by close
            self._handle_error(transport, exc)
            self._handle_close(transport)

    def send(self, command: OutboundCommand) -> bool:
        """Transmit command if OPEN; otherwise drop it with a warning.

        Returns:
            True if the command was handed to the transport.
        """
        action = command.action.value
        if self._state is not ConnectionState.OPEN or self._transport is None:
            STREAM_COMMANDS_DROPPED_TOTAL.labels(action=action).inc()
            logger.warning(
                "Stream not connected, cannot send",
                extra={"data": {"command": command.model_dump(mode="json", exclude_none=True)}},
            )
            return False

        try:
            self._transport.send(command.to_wire())
        except Exception as exc:
            STREAM_COMMANDS_DROPPED_TOTAL.labels(action=action).inc()
            logger.warning(
                "Send failed, command dropped",
                extra={"data": {"action": action, "error": str(exc)}},
            )
            return False

        STREAM_COMMANDS_SENT_TOTAL.labels(action=action).inc()
        return True

    def disconnect(self) -> None:
        """Close the connection and suppress auto-reconnect until connect()."""
        self._stopped = True
        self._cancel_reconnect()

        transport = self._transport
        if transport is None or self._state is ConnectionState.DISCONNECTED:
            self._transport = None
            self._state = ConnectionState.DISCONNECTED
            logger.info("Stream disconnected by caller")
            return

        self._state = ConnectionState.CLOSING
        logger.info("Closing stream", extra={"data": {"url": self.url}})
        try:
            transport.close()
        except Exception as exc:
            logger.warning("Transport close failed", extra={"data": {"error": str(exc)}})
            self._handle_close(transport)

    # ─── Transport Callbacks ───

    def _handle_open(self, transport: Transport) -> None:
        if transport is not self._transport:
            return

        self._state = ConnectionState.OPEN
        self._attempts = 0
        STREAM_CONNECTED.set(1)
        logger.info("Stream connected", extra={"data": {"url": self.url}})

        for hook in tuple(self._open_hooks):
            try:
                hook()
            except Exception as exc:
                logger.error(
                    "Open hook failed",
                    extra={"data": {"hook": getattr(hook, "__qualname__", repr(hook)), "error": str(exc)}},
                )

        self._bus.trigger(StreamEvent.CONNECTED)

    def _handle_message(self, transport: Transport, frame: str | bytes) -> None:
        if transport is not self._transport or self._frame_handler is None:
            return
        try:
            self._frame_handler(frame)
        except Exception as exc:
            logger.error(
                "Frame handler failed",
                extra={"data": {"error": str(exc), "error_type": type(exc).__name__}},
            )

    def _handle_error(self, transport: Transport, exc: Exception) -> None:
        if transport is not self._transport:
            return

        if not isinstance(exc, TransportError):
            exc = TransportError(str(exc), context={"url": self.url, "error_type": type(exc).__name__})

        STREAM_TRANSPORT_ERRORS_TOTAL.inc()
        logger.error("Stream error", extra={"data": {"error": str(exc)}})
        self._bus.trigger(StreamEvent.ERROR, exc)

    def _handle_close(self, transport: Transport) -> None:
        if transport is not self._transport:
            return

        self._transport = None
        self._state = ConnectionState.DISCONNECTED
        STREAM_CONNECTED.set(0)
        logger.info("Stream disconnected", extra={"data": {"url": self.url}})
        self._bus.trigger(StreamEvent.DISCONNECTED)

        # A disconnected listener may have called connect() already
        if self._stopped or self._state is not ConnectionState.DISCONNECTED:
            return
        self._schedule_reconnect()

    # ─── Reconnect Timer ───

    def _schedule_reconnect(self) -> None:
        self._cancel_reconnect()
        self._attempts += 1
        delay_ms = backoff_delay_ms(self._attempts, self.base_delay_ms, self.max_delay_ms)
        STREAM_RECONNECTS_TOTAL.inc()
        logger.info(
            "Reconnect scheduled",
            extra={"data": {"attempt": self._attempts, "delay_ms": delay_ms}},
        )
        self._reconnect_timer = self._scheduler.call_later(delay_ms / 1000, self._fire_reconnect)

    def _fire_reconnect(self) -> None:
        self._reconnect_timer = None
        if self._stopped:
            return
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
