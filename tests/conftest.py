"""
Pytest configuration and shared fixtures for camwatch tests.
"""

from datetime import datetime, timezone
from typing import Any, Dict

import pytest

from camwatch.store import InMemoryStore
from camwatch.tools.config_loader import WorkerConfig


HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


# ==============================================================================
# Clock & Configuration
# ==============================================================================

@pytest.fixture
def now_ms() -> int:
    """Fixed evaluation instant (2025-10-12 13:00 UTC)."""
    return int(datetime(2025, 10, 12, 13, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)


@pytest.fixture
def config() -> WorkerConfig:
    """Default worker constants: 10h lifetimes, 200 m, 10-day window, threshold 3."""
    return WorkerConfig()


@pytest.fixture
def scan_config() -> WorkerConfig:
    """Same constants with the brute-force neighbour scan."""
    return WorkerConfig(spatial_index="scan")


# ==============================================================================
# Record Factories
# ==============================================================================

@pytest.fixture
def make_doc(now_ms):
    """Build a fully populated record document; keyword args override fields."""

    def _make(**overrides: Any) -> Dict[str, Any]:
        doc = {
            "kind": "mobile",
            "lat": 35.6812,
            "lon": 139.7671,
            "timestamp": now_ms,
            "count": 1,
            "confidence": 70,
            "expiresAt": now_ms + 10 * HOUR_MS,
            "lastSeen": now_ms,
            "hotspot": False,
            "removed": False,
        }
        doc.update(overrides)
        return doc

    return _make


@pytest.fixture
def cluster_docs(make_doc) -> Dict[str, Dict[str, Any]]:
    """Three mobile sightings about 55 m apart around (0, 0)."""
    return {
        "a": make_doc(lat=0.0, lon=0.0),
        "b": make_doc(lat=0.0005, lon=0.0),
        "c": make_doc(lat=0.0, lon=0.0005),
    }


@pytest.fixture
def store_factory():
    """Create an InMemoryStore; reports default to an empty, available source."""

    def _make(records=None, reports=None, **kwargs) -> InMemoryStore:
        return InMemoryStore(records or {}, reports if reports is not None else {}, **kwargs)

    return _make
