"""Command-line stream watcher.

Connects to the configured realtime endpoint, subscribes to the configured
symbols and logs every event until interrupted. Useful for checking a
dashboard API server without the browser UI.

Run with: python -m tradestream.main
Configure with STREAM_ORIGIN / STREAM_URL / STREAM_SYMBOLS='["BTCUSDT"]'.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from tradestream.common.config import get_settings
from tradestream.common.logging import get_logger, set_log_level
from tradestream.realtime.client import StreamClient
from tradestream.realtime.models import StreamEvent

logger = get_logger("SYSTEM")


def _log_event(event: StreamEvent):
    def handler(payload: Any) -> None:
        logger.info(
            "Stream event",
            extra={"data": {"event": event.value, "payload": payload}},
        )

    return handler


def build_watcher_client(**overrides: Any) -> StreamClient:
    """Create a client with a logging listener on every stream event."""
    settings = get_settings()
    client = StreamClient.from_settings(settings, **overrides)
    for event in StreamEvent:
        client.on(event, _log_event(event))
    if settings.stream_symbols:
        client.subscribe(settings.stream_symbols)
    return client


async def stream_watcher(client: StreamClient | None = None) -> None:
    """Run the watcher until cancelled, then disconnect.

    Subscriptions are registered before connecting, so the first open
    replays them.
    """
    client = client or build_watcher_client()
    logger.info(
        "Stream watcher started",
        extra={"data": {"url": client.url, "symbols": list(client.subscriptions.topics)}},
    )
    client.connect()
    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Stream watcher shutting down")
    finally:
        client.disconnect()


def main() -> None:
    set_log_level(get_settings().log_level)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(stream_watcher())


if __name__ == "__main__":
    main()
