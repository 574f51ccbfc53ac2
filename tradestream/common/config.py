"""Application configuration via environment variables.

Uses pydantic-settings to load from .env file and environment variables.
All config is centralized here. Import `get_settings()` rather than
constructing Settings directly.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ─── App ───
    environment: str = "development"
    log_level: str = "INFO"

    # ─── Stream Endpoint ───
    stream_origin: str = "http://localhost"
    stream_port: int = 3000
    stream_path: str = "/ws"
    stream_url: str | None = None  # Full URL override, skips origin derivation

    # ─── Reconnect Policy ───
    reconnect_base_delay_ms: int = 1000
    reconnect_max_delay_ms: int = 30000

    # ─── Keepalive ───
    ping_interval_seconds: float = 0.0  # 0 disables application-level pings
    open_timeout_seconds: float = 10.0

    # ─── Watcher ───
    stream_symbols: list[str] = []


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton.

    Uses lru_cache so Settings is only instantiated once.
    In tests, call `get_settings.cache_clear()` to reset.
    """
    return Settings()
