"""Inbound frame decoding and dispatch onto the EventBus.

Each frame is parsed as JSON and routed by its `type` field:

    price_update, trade_update, alert_triggered,
    performance_update, heartbeat   -> EventBus event of the same name
    connected                       -> logged (server handshake confirmation)
    pong                            -> silently acknowledged
    anything else / malformed       -> logged and dropped

Nothing raised while decoding escapes route(); a bad frame costs only itself.
"""

from __future__ import annotations

import json
from typing import Any

from tradestream.common.exceptions import DecodeError, ProtocolError
from tradestream.common.logging import get_logger
from tradestream.common.metrics import STREAM_FRAMES_DROPPED_TOTAL, STREAM_MESSAGES_TOTAL
from tradestream.realtime.events import EventBus
from tradestream.realtime.models import DISPATCHED_TYPES, MessageType

logger = get_logger("ROUTER")

_PREVIEW_CHARS = 200


def decode_frame(frame: str | bytes) -> tuple[MessageType, dict[str, Any]]:
    """Parse a raw frame into its message type and full payload.

    Raises:
        DecodeError: If the frame is not UTF-8 JSON or is too large or deep to parse.
        ProtocolError: If the JSON is not an object or has no recognized type.
    """
    try:
        if isinstance(frame, (bytes, bytearray)):
            frame = frame.decode("utf-8")
        data = json.loads(frame)
    except (ValueError, RecursionError, TypeError) as exc:
        raise DecodeError(
            f"Failed to parse stream message: {exc}",
            context={"preview": _preview(frame)},
        ) from exc

    if not isinstance(data, dict):
        raise ProtocolError(
            "Stream message is not a JSON object",
            context={"json_type": type(data).__name__},
        )

    raw_type = data.get("type")
    try:
        message_type = MessageType(raw_type)
    except ValueError:
        raise ProtocolError(
            "Unknown message type",
            context={"type": raw_type},
        ) from None

    return message_type, data


class MessageRouter:
    """Decodes frames and triggers the matching EventBus event.

    Args:
        bus: EventBus that receives decoded messages.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus

    def route(self, frame: str | bytes) -> None:
        """Decode one frame and dispatch it; drops it on any decode problem."""
        try:
            message_type, data = decode_frame(frame)
        except DecodeError as exc:
            STREAM_FRAMES_DROPPED_TOTAL.labels(reason="decode").inc()
            logger.warning("Failed to parse stream message", extra={"data": exc.context})
            return
        except ProtocolError as exc:
            STREAM_FRAMES_DROPPED_TOTAL.labels(reason="protocol").inc()
            logger.warning(str(exc.args[0]), extra={"data": exc.context})
            return

        STREAM_MESSAGES_TOTAL.labels(message_type=message_type.value).inc()

        if message_type is MessageType.CONNECTED:
            logger.info("Server confirmed connection")
        elif message_type is MessageType.PONG:
            logger.debug("Pong received")
        elif message_type in DISPATCHED_TYPES:
            self._bus.trigger(message_type.value, data)


def _preview(frame: Any) -> str:
    text = frame if isinstance(frame, str) else repr(frame)
    return text[:_PREVIEW_CHARS]
