"""Symbol subscription bookkeeping that survives reconnects.

The registry holds the caller's desired set of topics regardless of
connection state. Each subscribe/unsubscribe call updates the set and
forwards the matching command; every successful (re)connect replays the
whole set as a single subscribe command. Disconnects never clear the set.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator

from tradestream.common.logging import get_logger
from tradestream.realtime.models import OutboundCommand, normalize_topic, normalize_topics

logger = get_logger("SUBSCRIBE")


class SubscriptionRegistry:
    """Insertion-ordered set of subscribed topics plus its wire projection.

    Args:
        send: Callable that transmits an OutboundCommand (typically
            ConnectionManager.send). Its return value is ignored.
    """

    def __init__(self, send: Callable[[OutboundCommand], object]) -> None:
        self._send = send
        # dict keys give set semantics with stable replay order
        self._topics: dict[str, None] = {}

    @property
    def topics(self) -> tuple[str, ...]:
        return tuple(self._topics)

    def __len__(self) -> int:
        return len(self._topics)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._topics))

    def __contains__(self, topic: object) -> bool:
        if not isinstance(topic, str):
            return False
        try:
            return normalize_topic(topic) in self._topics
        except ValueError:
            return False

    def subscribe(self, topics: str | Iterable[str]) -> None:
        """Add topics and send a subscribe command, even for known topics.

        Raises:
            ValueError: If any topic is blank or not a string.
        """
        normalized = normalize_topics(topics)
        if not normalized:
            return

        for topic in normalized:
            self._topics[topic] = None

        self._send(OutboundCommand.subscribe(normalized))
        logger.info(
            "Subscribed",
            extra={"data": {"symbols": normalized, "total": len(self._topics)}},
        )

    def unsubscribe(self, topics: str | Iterable[str]) -> None:
        """Remove topics (non-members are ignored) and send an unsubscribe command."""
        normalized = normalize_topics(topics)
        if not normalized:
            return

        for topic in normalized:
            self._topics.pop(topic, None)

        self._send(OutboundCommand.unsubscribe(normalized))
        logger.info(
            "Unsubscribed",
            extra={"data": {"symbols": normalized, "total": len(self._topics)}},
        )

    def unsubscribe_all(self) -> None:
        """Drop every topic with a single unsubscribe command."""
        if self._topics:
            self.unsubscribe(list(self._topics))

    def replay(self) -> None:
        """Re-send the whole set as one subscribe command (called on every open)."""
        if not self._topics:
            return

        topics = list(self._topics)
        self._send(OutboundCommand.subscribe(topics))
        logger.info("Replayed subscriptions", extra={"data": {"symbols": topics}})
