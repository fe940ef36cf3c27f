"""
Tests for the command-line entry point (camwatch/cli.py).
"""

import pytest

from camwatch import cli
from camwatch.store import InMemoryStore


@pytest.fixture(autouse=True)
def default_profile(monkeypatch):
    monkeypatch.delenv("CAMWATCH_PROFILE", raising=False)


class TestMain:
    """Test exit codes and wiring."""

    def test_successful_run_exits_zero(self, cluster_docs, now_ms):
        store = InMemoryStore(cluster_docs, {})

        code = cli.main(["--now", str(now_ms)], store=store)

        assert code == 0
        assert store.records["a"]["hotspot"] is True

    def test_write_failures_still_exit_zero(self, cluster_docs, now_ms):
        store = InMemoryStore(cluster_docs, {}, fail_ids={"a"})
        assert cli.main(["--now", str(now_ms)], store=store) == 0

    def test_snapshot_failure_exits_one(self, now_ms):
        store = InMemoryStore({}, {}, snapshot_unavailable=True)
        assert cli.main(["--now", str(now_ms)], store=store) == 1

    def test_unknown_profile_exits_one(self, now_ms):
        store = InMemoryStore({}, {})
        assert cli.main(["--profile", "nope", "--now", str(now_ms)], store=store) == 1

    def test_dry_run(self, cluster_docs, now_ms):
        store = InMemoryStore(cluster_docs, {})

        assert cli.main(["--dry-run", "--now", str(now_ms)], store=store) == 0
        assert store.write_log == []

    def test_missing_mongo_uri_exits_one(self, monkeypatch, now_ms):
        monkeypatch.setattr(cli, "load_dotenv", lambda: None)
        monkeypatch.delenv("MONGO_URI", raising=False)

        assert cli.main(["--now", str(now_ms)]) == 1

    def test_compact_profile(self, make_doc, now_ms):
        """An 8-day-old zero-count report falls outside the 7-day compact window."""
        store = InMemoryStore({"x": make_doc(count=0, timestamp=now_ms - 8 * 24 * 3600 * 1000)}, {})

        assert cli.main(["--profile", "compact", "--now", str(now_ms)], store=store) == 0
        assert "x" not in store.records
