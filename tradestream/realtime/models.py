"""Data model for the realtime stream: states, topics, and wire messages.

Outbound commands are Pydantic models so their JSON shape is defined in
one place. Inbound messages stay plain dicts; only the `type` discriminator
is interpreted here, the rest of the payload belongs to the consumer.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, field_validator


class ConnectionState(str, Enum):
    """Lifecycle state of the single stream connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


# Caller-facing status strings; OPEN reads as "connected" to the dashboard.
STATUS_BY_STATE = {
    ConnectionState.DISCONNECTED: "disconnected",
    ConnectionState.CONNECTING: "connecting",
    ConnectionState.OPEN: "connected",
    ConnectionState.CLOSING: "closing",
}


class MessageType(str, Enum):
    """Recognized values of the inbound `type` discriminator."""

    CONNECTED = "connected"
    PRICE_UPDATE = "price_update"
    TRADE_UPDATE = "trade_update"
    ALERT_TRIGGERED = "alert_triggered"
    PERFORMANCE_UPDATE = "performance_update"
    HEARTBEAT = "heartbeat"
    PONG = "pong"


class StreamEvent(str, Enum):
    """Event names listeners can register for on the EventBus."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    PRICE_UPDATE = "price_update"
    TRADE_UPDATE = "trade_update"
    ALERT_TRIGGERED = "alert_triggered"
    PERFORMANCE_UPDATE = "performance_update"
    HEARTBEAT = "heartbeat"


# Inbound types forwarded to listeners under the same event name.
DISPATCHED_TYPES = frozenset(
    {
        MessageType.PRICE_UPDATE,
        MessageType.TRADE_UPDATE,
        MessageType.ALERT_TRIGGERED,
        MessageType.PERFORMANCE_UPDATE,
        MessageType.HEARTBEAT,
    }
)


class Action(str, Enum):
    """Outbound command actions understood by the server."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    PING = "ping"


def normalize_topic(topic: str) -> str:
    """Canonicalize a topic (market symbol) to its upper-case form.

    Args:
        topic: Raw symbol, e.g. " btcusdt".

    Returns:
        The normalized topic, e.g. "BTCUSDT".

    Raises:
        ValueError: If the topic is not a string or is blank.
    """
    if not isinstance(topic, str):
        raise ValueError(f"Topic must be a string, got {type(topic).__name__}")
    normalized = topic.strip().upper()
    if not normalized:
        raise ValueError("Topic must not be empty")
    return normalized


def normalize_topics(topics: str | Iterable[str]) -> list[str]:
    """Normalize one topic or an iterable of topics, dropping repeats.

    Order of first appearance is kept so outbound commands are deterministic.
    """
    if isinstance(topics, str):
        topics = [topics]
    return list(dict.fromkeys(normalize_topic(t) for t in topics))


class OutboundCommand(BaseModel):
    """A command sent from the client to the server.

    Attributes:
        action: subscribe, unsubscribe, or ping.
        symbols: Topics the command applies to; omitted on the wire when None.
    """

    action: Action
    symbols: list[str] | None = None

    @field_validator("symbols")
    @classmethod
    def _normalize_symbols(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [normalize_topic(s) for s in value]

    @classmethod
    def subscribe(cls, topics: Iterable[str]) -> OutboundCommand:
        return cls(action=Action.SUBSCRIBE, symbols=list(topics))

    @classmethod
    def unsubscribe(cls, topics: Iterable[str]) -> OutboundCommand:
        return cls(action=Action.UNSUBSCRIBE, symbols=list(topics))

    @classmethod
    def ping(cls) -> OutboundCommand:
        return cls(action=Action.PING)

    def to_wire(self) -> str:
        """Serialize to the JSON text frame sent over the transport."""
        return self.model_dump_json(exclude_none=True)
