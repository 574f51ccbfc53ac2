"""Root test configuration: shared fixtures for all test modules.

IMPORTANT: Environment variables are set BEFORE any tradestream imports
so that config.py loads predictable Settings without a .env file.
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("STREAM_ORIGIN", "http://localhost")
os.environ.setdefault("STREAM_SYMBOLS", "[]")

# Now safe to import tradestream modules
import pytest

from tradestream.common.config import Settings, get_settings

# ─── Clear cached settings so test env vars are used ───
get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Return the cached test settings."""
    return get_settings()


@pytest.fixture
def sample_price_update() -> dict:
    """A price_update frame payload as pushed by the dashboard API server."""
    return {
        "type": "price_update",
        "symbol": "BTCUSDT",
        "price": "95234.56",
        "changePercent": "2.5",
        "high": "96000.00",
        "low": "94000.00",
        "volume": "1000000000",
    }


@pytest.fixture
def sample_trade_update() -> dict:
    """A trade_update frame payload with the trade nested under data."""
    return {
        "type": "trade_update",
        "data": {
            "symbol": "ETHUSDT",
            "side": "BUY",
            "quantity": 0.5,
            "price": "3412.10",
        },
    }
