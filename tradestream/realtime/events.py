"""Named-event listener registry with fault-isolated dispatch.

Listeners are plain callables taking a single payload argument. A listener
that raises is logged and skipped; the rest of the listeners for that event
still run and the caller of trigger() never sees the exception.

Coroutine listeners are supported: if a listener returns an awaitable it is
scheduled on the running event loop and its failure is logged the same way.

Usage:
    from tradestream.realtime.events import EventBus

    bus = EventBus()
    bus.on("price_update", lambda msg: print(msg["symbol"], msg["price"]))
    bus.trigger("price_update", {"type": "price_update", "symbol": "BTCUSDT"})
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

from tradestream.common.logging import get_logger
from tradestream.common.metrics import STREAM_LISTENER_ERRORS_TOTAL
from tradestream.realtime.models import StreamEvent

logger = get_logger("EVENTS")

Listener = Callable[[Any], Any]


class EventBus:
    """Ordered, fault-isolated listener dispatch keyed by event name.

    Args:
        event_names: Names listeners may register for. Defaults to every
            StreamEvent value.
    """

    def __init__(self, event_names: Iterable[str] | None = None) -> None:
        names = event_names if event_names is not None else (e.value for e in StreamEvent)
        self._listeners: dict[str, list[Listener]] = {str(name): [] for name in names}
        self._pending: set[asyncio.Future] = set()

    def on(self, event: str, handler: Listener) -> None:
        """Register a handler; duplicates are kept and each is called."""
        listeners = self._listeners.get(_event_name(event))
        if listeners is None:
            logger.warning(
                "Unknown event type, listener not registered",
                extra={"data": {"event": _event_name(event)}},
            )
            return
        listeners.append(handler)

    def off(self, event: str, handler: Listener) -> None:
        """Remove the first registration of handler (by identity)."""
        listeners = self._listeners.get(_event_name(event))
        if not listeners:
            return
        for index, registered in enumerate(listeners):
            if registered is handler:
                del listeners[index]
                return

    def trigger(self, event: str, payload: Any = None) -> None:
        """Call every handler for event with payload, in registration order.

        Iterates over a snapshot, so handlers added or removed during dispatch
        take effect on the next trigger.
        """
        name = _event_name(event)
        listeners = self._listeners.get(name)
        if listeners is None:
            logger.warning("Trigger for unknown event type", extra={"data": {"event": name}})
            return

        for handler in tuple(listeners):
            try:
                result = handler(payload)
            except Exception as exc:
                self._report_failure(name, handler, exc)
                continue

            if inspect.isawaitable(result):
                self._schedule(name, handler, result)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(_event_name(event), ()))

    # ─── Internal Methods ───

    def _schedule(self, name: str, handler: Listener, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._report_failure(name, handler, exc)
            return

        future = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(future)

        def _done(fut: asyncio.Future) -> None:
            self._pending.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                self._report_failure(name, handler, exc)

        future.add_done_callback(_done)

    @staticmethod
    def _report_failure(name: str, handler: Listener, exc: BaseException) -> None:
        STREAM_LISTENER_ERRORS_TOTAL.labels(event=name).inc()
        logger.error(
            "Error in event handler",
            extra={
                "data": {
                    "event": name,
                    "handler": getattr(handler, "__qualname__", repr(handler)),
                    "error": str(exc),
                }
            },
        )


def _event_name(event: str) -> str:
    return event.value if isinstance(event, Enum) else str(event)
