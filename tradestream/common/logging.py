"""Structured logging setup for tradestream.

Each line carries a millisecond UTC timestamp, level, module tag, message and
optional JSON data. Reconnect timing and frame bursts are read straight from
these lines, so the timestamp is taken from the record itself.
Secret-looking values are redacted and oversized data is truncated.

Usage:
    from tradestream.common.logging import get_logger
    logger = get_logger("STREAM")
    logger.info("Connected", extra={"data": {"url": "ws://localhost:3000/ws"}})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime

# Module tags for structured logging
MODULE_TAGS = {
    "STREAM",
    "SUBSCRIBE",
    "ROUTER",
    "EVENTS",
    "SYSTEM",
    "TEST",
}

# Longest JSON data suffix written per line
MAX_DATA_CHARS = 2000

_SECRET_KEY_PATTERN = re.compile(
    r'"([^"]*(?:key|secret|password|token|private|pem|credential)[^"]*)":\s*"([^"]*)"',
    re.IGNORECASE,
)


def _redact_secrets(text: str) -> str:
    """Replace values of secret-looking keys with [REDACTED] in a string."""
    return _SECRET_KEY_PATTERN.sub(r'"\1": "[REDACTED]"', text)


def _truncate(text: str, limit: int = MAX_DATA_CHARS) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...(+{len(text) - limit} chars)"


class StructuredFormatter(logging.Formatter):
    """Pipe-separated line formatter.

    Output format:
        2025-02-15T10:30:00.125Z | INFO | STREAM | Connected | {"url": "ws://..."}
    """

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        created = datetime.fromtimestamp(record.created, UTC)
        return created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z"

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            self.formatTime(record),
            record.levelname,
            getattr(record, "module_tag", "SYSTEM"),
            _redact_secrets(record.getMessage()),
        ]

        data = getattr(record, "data", None)
        if data is not None:
            try:
                data_str = json.dumps(data, default=str)
            except (TypeError, ValueError):
                data_str = str(data)
            parts.append(_truncate(_redact_secrets(data_str)))

        line = " | ".join(parts)
        if record.exc_info:
            line = f"{line}\n{_redact_secrets(self.formatException(record.exc_info))}"
        return line


class ModuleTagLogger(logging.LoggerAdapter):
    """Adapter stamping every record with its module tag.

    Usage:
        logger = get_logger("ROUTER")
        logger.warning("Dropped frame", extra={"data": {"reason": "decode"}})
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get("extra", {})
        extra["module_tag"] = self.extra.get("module_tag", "SYSTEM")
        kwargs["extra"] = extra
        return msg, kwargs


_loggers: dict[str, ModuleTagLogger] = {}


def get_logger(module_tag: str) -> ModuleTagLogger:
    """Get the shared logger for a module tag (STREAM, ROUTER, EVENTS, ...)."""
    if module_tag in _loggers:
        return _loggers[module_tag]

    logger = logging.getLogger(f"tradestream.{module_tag.lower()}")

    # Loggers are process-global; never stack a second handler
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

    adapter = ModuleTagLogger(logger, {"module_tag": module_tag})
    _loggers[module_tag] = adapter
    return adapter


def set_log_level(level: str) -> None:
    """Apply a log level name (e.g. "INFO") to every tradestream logger."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    for adapter in _loggers.values():
        adapter.logger.setLevel(numeric)
