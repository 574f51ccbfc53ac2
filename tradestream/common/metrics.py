"""Prometheus metrics definitions for tradestream.

All metric objects are centralized here as module-level singletons.
Import what you need from anywhere in the codebase:

    from tradestream.common.metrics import STREAM_CONNECTED, STREAM_MESSAGES_TOTAL

Hosting applications expose them with prometheus_client's own exporters
(start_http_server, make_asgi_app, ...).
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

# ─── Connection Metrics ───

STREAM_CONNECTED = Gauge(
    "stream_connected",
    "Realtime stream connected (1=connected, 0=disconnected)",
)

STREAM_RECONNECTS_TOTAL = Counter(
    "stream_reconnects_total",
    "Realtime stream reconnect attempts scheduled",
)

STREAM_TRANSPORT_ERRORS_TOTAL = Counter(
    "stream_transport_errors_total",
    "Transport-level errors reported by the realtime stream",
)

# ─── Inbound Metrics ───

STREAM_MESSAGES_TOTAL = Counter(
    "stream_messages_total",
    "Inbound frames decoded and routed",
    labelnames=["message_type"],
)

STREAM_FRAMES_DROPPED_TOTAL = Counter(
    "stream_frames_dropped_total",
    "Inbound frames dropped before dispatch",
    labelnames=["reason"],
)

STREAM_LISTENER_ERRORS_TOTAL = Counter(
    "stream_listener_errors_total",
    "Listener callbacks that raised during dispatch",
    labelnames=["event"],
)

# ─── Outbound Metrics ───

STREAM_COMMANDS_SENT_TOTAL = Counter(
    "stream_commands_sent_total",
    "Outbound commands transmitted",
    labelnames=["action"],
)

STREAM_COMMANDS_DROPPED_TOTAL = Counter(
    "stream_commands_dropped_total",
    "Outbound commands dropped because the stream was not open",
    labelnames=["action"],
)
