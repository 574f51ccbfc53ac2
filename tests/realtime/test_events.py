"""Tests for the EventBus listener registry and dispatch."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

from tradestream.realtime.events import EventBus
from tradestream.realtime.models import StreamEvent


class TestRegistration:
    """Tests for on/off bookkeeping."""

    def test_on_appends_in_order(self, bus: EventBus) -> None:
        calls: list[str] = []
        bus.on("heartbeat", lambda _: calls.append("first"))
        bus.on("heartbeat", lambda _: calls.append("second"))

        bus.trigger("heartbeat", {})

        assert calls == ["first", "second"]

    def test_duplicates_are_called_twice(self, bus: EventBus) -> None:
        handler = MagicMock()
        bus.on("heartbeat", handler)
        bus.on("heartbeat", handler)

        bus.trigger("heartbeat", {"type": "heartbeat"})

        assert handler.call_count == 2
        assert bus.listener_count("heartbeat") == 2

    def test_off_removes_first_identity_match(self, bus: EventBus) -> None:
        handler = MagicMock()
        bus.on("heartbeat", handler)
        bus.on("heartbeat", handler)

        bus.off("heartbeat", handler)

        assert bus.listener_count("heartbeat") == 1

    def test_off_unregistered_handler_is_noop(self, bus: EventBus) -> None:
        bus.on("heartbeat", MagicMock())
        bus.off("heartbeat", MagicMock())  # Should not raise
        assert bus.listener_count("heartbeat") == 1

    def test_off_unknown_event_is_noop(self, bus: EventBus) -> None:
        bus.off("no_such_event", MagicMock())  # Should not raise

    def test_unknown_event_registration_ignored_with_warning(self, bus: EventBus) -> None:
        with patch("tradestream.realtime.events.logger") as mock_logger:
            bus.on("order_book", MagicMock())

        mock_logger.warning.assert_called_once()
        assert bus.listener_count("order_book") == 0

    def test_accepts_enum_event_names(self, bus: EventBus) -> None:
        handler = MagicMock()
        bus.on(StreamEvent.TRADE_UPDATE, handler)

        bus.trigger("trade_update", {"id": 1})

        handler.assert_called_once_with({"id": 1})

    def test_custom_event_names(self) -> None:
        bus = EventBus(event_names=["tick"])
        handler = MagicMock()
        bus.on("tick", handler)
        bus.trigger("tick", 1)
        handler.assert_called_once_with(1)
        assert bus.listener_count("price_update") == 0


class TestTrigger:
    """Tests for dispatch semantics and fault isolation."""

    def test_passes_payload(self, bus: EventBus, sample_price_update: dict) -> None:
        handler = MagicMock()
        bus.on("price_update", handler)

        bus.trigger("price_update", sample_price_update)

        handler.assert_called_once_with(sample_price_update)

    def test_payload_defaults_to_none(self, bus: EventBus) -> None:
        handler = MagicMock()
        bus.on("connected", handler)

        bus.trigger("connected")

        handler.assert_called_once_with(None)

    def test_no_listeners_is_silent(self, bus: EventBus) -> None:
        with patch("tradestream.realtime.events.logger") as mock_logger:
            bus.trigger("alert_triggered", {"type": "alert_triggered"})

        mock_logger.warning.assert_not_called()

    def test_unknown_event_warns_but_does_not_raise(self, bus: EventBus) -> None:
        with patch("tradestream.realtime.events.logger") as mock_logger:
            bus.trigger("mystery", {})

        mock_logger.warning.assert_called_once()

    def test_raising_handler_does_not_block_others(
        self, bus: EventBus, sample_trade_update: dict
    ) -> None:
        """A faulty listener is isolated; the next one still gets the payload."""
        first = MagicMock(side_effect=RuntimeError("boom"))
        second = MagicMock()
        bus.on("trade_update", first)
        bus.on("trade_update", second)

        bus.trigger("trade_update", sample_trade_update)  # Should not raise

        first.assert_called_once()
        second.assert_called_once_with(sample_trade_update)

    def test_raising_handler_is_logged_and_counted(self, bus: EventBus) -> None:
        bus.on("trade_update", MagicMock(side_effect=ValueError("bad")))

        with (
            patch("tradestream.realtime.events.logger") as mock_logger,
            patch("tradestream.realtime.events.STREAM_LISTENER_ERRORS_TOTAL") as mock_counter,
        ):
            bus.trigger("trade_update", {})

        mock_logger.error.assert_called_once()
        mock_counter.labels.assert_called_with(event="trade_update")
        mock_counter.labels.return_value.inc.assert_called_once()

    def test_handler_removing_itself_does_not_skip_next(self, bus: EventBus) -> None:
        """Dispatch iterates a snapshot taken when trigger() starts."""
        calls: list[str] = []

        def once(_payload: object) -> None:
            calls.append("once")
            bus.off("heartbeat", once)

        bus.on("heartbeat", once)
        bus.on("heartbeat", lambda _: calls.append("always"))

        bus.trigger("heartbeat", {})
        bus.trigger("heartbeat", {})

        assert calls == ["once", "always", "always"]

    def test_handler_added_during_dispatch_runs_next_time(self, bus: EventBus) -> None:
        late = MagicMock()

        def adder(_payload: object) -> None:
            bus.on("heartbeat", late)

        bus.on("heartbeat", adder)

        bus.trigger("heartbeat", {})
        late.assert_not_called()

        bus.trigger("heartbeat", {})
        late.assert_called_once()


class TestCoroutineHandlers:
    """Tests for async listeners scheduled on the running loop."""

    async def test_coroutine_handler_runs(self, bus: EventBus) -> None:
        received: list[dict] = []

        async def handler(payload: dict) -> None:
            received.append(payload)

        bus.on("performance_update", handler)
        bus.trigger("performance_update", {"pnl": 12.5})
        await asyncio.sleep(0)

        assert received == [{"pnl": 12.5}]

    async def test_coroutine_failure_is_logged(self, bus: EventBus) -> None:
        async def handler(_payload: dict) -> None:
            raise RuntimeError("async boom")

        bus.on("performance_update", handler)

        with patch("tradestream.realtime.events.logger") as mock_logger:
            bus.trigger("performance_update", {})
            await asyncio.sleep(0)
            await asyncio.sleep(0)

        mock_logger.error.assert_called_once()

    def test_coroutine_without_loop_is_reported(self, bus: EventBus) -> None:
        async def handler(_payload: dict) -> None:
            return None

        bus.on("heartbeat", handler)

        with patch("tradestream.realtime.events.logger") as mock_logger:
            bus.trigger("heartbeat", {})

        mock_logger.error.assert_called_once()
