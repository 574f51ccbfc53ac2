"""Stream endpoint URL derivation from the dashboard's page origin."""

from __future__ import annotations

from urllib.parse import urlsplit

DEFAULT_STREAM_PORT = 3000
DEFAULT_STREAM_PATH = "/ws"


def build_stream_url(
    origin: str,
    port: int = DEFAULT_STREAM_PORT,
    path: str = DEFAULT_STREAM_PATH,
) -> str:
    """Build the realtime endpoint for a page origin.

    The secure page scheme (https) maps to wss, anything else to ws. The
    origin's own port is ignored: the stream lives on the API server port.

    Args:
        origin: Page origin, e.g. "https://dash.example.com:8443".
        port: API server port.
        path: Realtime endpoint path.

    Returns:
        URL such as "wss://dash.example.com:3000/ws".

    Raises:
        ValueError: If the origin has no host.
    """
    parts = urlsplit(origin if "//" in origin else f"//{origin}")
    host = parts.hostname
    if not host:
        raise ValueError(f"Origin has no host: {origin!r}")

    scheme = "wss" if parts.scheme.lower() in ("https", "wss") else "ws"
    if ":" in host:
        host = f"[{host}]"  # IPv6 literal
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{scheme}://{host}:{port}{path}"
