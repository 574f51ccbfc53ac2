"""Stream-specific exceptions with structured context and automatic secret filtering.

All realtime stream errors are subclasses of StreamError. Each exception
carries an optional context dict for debugging, with automatic filtering of
keys that look like they might contain secrets.

None of these ever escape the stream client to the hosting process: transport
errors become `error` events, decode and protocol errors are logged and the
frame is dropped.

Usage:
    from tradestream.common.exceptions import DecodeError

    raise DecodeError(
        "Frame is not valid JSON",
        context={"preview": frame[:80]},
    )
"""

from __future__ import annotations


class StreamError(Exception):
    """Base exception for all realtime stream errors.

    Args:
        message: Human-readable error description.
        context: Optional dict of structured data for logging/debugging.
    """

    def __init__(self, message: str, context: dict | None = None) -> None:
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.context:
            safe_ctx = {k: v for k, v in self.context.items() if not _is_secret_key(k)}
            return f"{base} | context={safe_ctx}"
        return base


class TransportError(StreamError):
    """Connection refused, network drop, or any failure raised by the transport."""


class DecodeError(StreamError):
    """Inbound frame could not be parsed as JSON."""


class ProtocolError(StreamError):
    """Inbound frame parsed but carries no recognized `type` discriminator."""


def _is_secret_key(key: str) -> bool:
    """Check if a dict key name suggests it contains secret data."""
    secret_words = {"key", "secret", "password", "token", "private", "pem", "credential"}
    key_lower = key.lower()
    return any(word in key_lower for word in secret_words)
