"""Transport and timer capabilities consumed by the ConnectionManager.

The connection core only depends on the two protocols below, so tests drive
it with in-memory fakes. Production uses WebsocketsTransport (one instance
per connection attempt) and AsyncioScheduler.

Usage:
    from tradestream.realtime.transport import AsyncioScheduler, WebsocketsTransport

    transport = WebsocketsTransport(open_timeout=10.0)
    transport.on_message = print
    transport.open("ws://localhost:3000/ws")
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from typing import Any, Protocol

import websockets

from tradestream.common.exceptions import TransportError
from tradestream.common.logging import get_logger

logger = get_logger("STREAM")


class Transport(Protocol):
    """Callback-driven bidirectional connection (one per open attempt)."""

    on_open: Callable[[], None] | None
    on_message: Callable[[str | bytes], None] | None
    on_error: Callable[[Exception], None] | None
    on_close: Callable[[], None] | None

    def open(self, url: str) -> None: ...

    def send(self, data: str) -> None: ...

    def close(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Delayed-callback capability used for reconnect and keepalive timers."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class WebsocketsTransport:
    """Transport over the `websockets` client, run as a background task.

    open() starts a task that connects, reports on_open, feeds every frame
    to on_message and finally reports on_close, whether the connection ended
    cleanly, failed to open, or dropped. Failures are reported through
    on_error as TransportError before on_close.

    Outbound frames go through a queue drained by a single writer task, so
    they leave in send() call order.

    Args:
        open_timeout: Seconds to wait for the opening handshake.
        **connect_kwargs: Extra keyword arguments for websockets.connect().
    """

    def __init__(self, open_timeout: float | None = 10.0, **connect_kwargs: Any) -> None:
        self.on_open: Callable[[], None] | None = None
        self.on_message: Callable[[str | bytes], None] | None = None
        self.on_error: Callable[[Exception], None] | None = None
        self.on_close: Callable[[], None] | None = None

        self._open_timeout = open_timeout
        self._connect_kwargs = connect_kwargs
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._closer: asyncio.Task | None = None
        self._outbox: asyncio.Queue[str] | None = None

    def open(self, url: str) -> None:
        """Start connecting in the background. Must be called inside a running loop."""
        if self._task is not None:
            raise TransportError("Transport already opened", context={"url": url})
        self._task = asyncio.get_running_loop().create_task(self._run(url))

    def send(self, data: str) -> None:
        """Queue a text frame for transmission.

        Raises:
            TransportError: If the connection is not open.
        """
        if self._ws is None or self._outbox is None:
            raise TransportError("Cannot send frame: transport is not open")
        self._outbox.put_nowait(data)

    def close(self) -> None:
        """Begin closing; on_close fires once the connection has shut down."""
        if self._task is None or self._task.done():
            return
        if self._ws is not None:
            self._closer = asyncio.get_running_loop().create_task(self._ws.close())
        else:
            # Still in the opening handshake
            self._task.cancel()

    # ─── Internal Methods ───

    async def _run(self, url: str) -> None:
        try:
            async with websockets.connect(
                url,
                open_timeout=self._open_timeout,
                **self._connect_kwargs,
            ) as ws:
                self._ws = ws
                self._outbox = asyncio.Queue()
                self._emit(self.on_open)

                writer = asyncio.create_task(self._drain(ws, self._outbox))
                try:
                    async for raw in ws:
                        self._emit(self.on_message, raw)
                finally:
                    writer.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await writer

        except asyncio.CancelledError:
            logger.debug("Transport open cancelled", extra={"data": {"url": url}})

        except Exception as exc:
            self._emit(
                self.on_error,
                TransportError(
                    f"WebSocket connection failed: {exc}",
                    context={"url": url, "error_type": type(exc).__name__},
                ),
            )

        finally:
            self._ws = None
            self._outbox = None
            self._emit(self.on_close)

    async def _drain(self, ws: Any, outbox: asyncio.Queue[str]) -> None:
        while True:
            data = await outbox.get()
            try:
                await ws.send(data)
            except websockets.ConnectionClosed:
                # The reader loop sees the same close and reports it
                return

    @staticmethod
    def _emit(callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is not None:
            callback(*args)
