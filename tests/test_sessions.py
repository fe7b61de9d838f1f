"""Unit tests for auth/sessions.py -- SessionStore mechanics.

Covers:
- load() on a missing, corrupt, or partially malformed file
- flush() creates parent directories and writes the historical ms format
- flush() + load() restores the map (a restart)
- prune_expired() removes only sessions past the TTL
- evict_lru() keeps the most recently used, ties broken by insertion order
"""

import json

import pytest

from auth.errors import StorageError
from auth.models import Session
from auth.sessions import SessionStore


@pytest.fixture
def store(tmp_path):
    s = SessionStore(tmp_path / "nested" / "sessions-auth.json")
    s.load()
    return s


def _session(token: str, created: float, last_used: float = None) -> Session:
    return Session(token=token, created_at=created, last_used_at=created if last_used is None else last_used)


class TestLoad:
    def test_missing_file_loads_empty(self, store):
        assert store.load() == 0
        assert len(store) == 0

    def test_corrupt_file_loads_empty(self, tmp_path):
        path = tmp_path / "sessions-auth.json"
        path.write_text("{not json")
        s = SessionStore(path)
        assert s.load() == 0

    def test_malformed_record_is_skipped(self, tmp_path):
        path = tmp_path / "sessions-auth.json"
        path.write_text(json.dumps({"good": {"created": 1000, "lastUsed": 2000}, "bad": {"nope": 1}}))
        s = SessionStore(path)
        assert s.load() == 1
        assert "good" in s
        assert "bad" not in s


class TestFlush:
    def test_flush_creates_parent_dirs_and_writes_ms(self, store):
        store.put(_session("abc", 1000.5, 1002.25))
        store.flush(1003.0)
        data = json.loads(store.path.read_text())
        assert data == {"abc": {"created": 1000500, "lastUsed": 1002250}}

    def test_flush_stamps_every_session(self, store):
        store.put(_session("a", 10.0))
        store.put(_session("b", 20.0))
        store.flush(99.0)
        assert store.get("a").last_flushed_at == 99.0
        assert store.get("b").last_flushed_at == 99.0

    def test_reload_restores_map(self, store):
        store.put(_session("a", 10.0, 15.0))
        store.flush(15.0)

        restarted = SessionStore(store.path)
        assert restarted.load() == 1
        session = restarted.get("a")
        assert session.created_at == 10.0
        assert session.last_used_at == 15.0
        assert session.last_flushed_at == 15.0

    def test_flush_failure_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file where a directory should be")
        s = SessionStore(blocker / "sessions-auth.json")
        s.put(_session("a", 1.0))
        with pytest.raises(StorageError):
            s.flush(1.0)


class TestHousekeeping:
    def test_prune_expired_only_removes_old(self, store):
        store.put(_session("old", 0.0))
        store.put(_session("edge", 50.0))
        store.put(_session("new", 90.0))
        removed = store.prune_expired(now=150.0, ttl=100.0)
        assert removed == 1
        assert store.tokens() == ["edge", "new"]

    def test_evict_lru_uses_last_used(self, store):
        store.put(_session("a", 1.0, last_used=50.0))
        store.put(_session("b", 2.0, last_used=10.0))
        store.put(_session("c", 3.0, last_used=30.0))
        assert store.evict_lru(keep=2) == 1
        assert store.tokens() == ["a", "c"]

    def test_evict_lru_ties_follow_insertion_order(self, store):
        for token in ("first", "second", "third"):
            store.put(_session(token, 5.0, last_used=5.0))
        store.evict_lru(keep=1)
        assert store.tokens() == ["third"]

    def test_evict_lru_noop_under_capacity(self, store):
        store.put(_session("a", 1.0))
        assert store.evict_lru(keep=5) == 0
        assert len(store) == 1
