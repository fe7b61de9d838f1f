"""
auth/sessions.py -- In-memory-authoritative, disk-backed session map.

The dict held by SessionStore is the single source of truth inside the
process. sessions-auth.json is persistence only: it is read once by load()
at startup and rewritten in full by flush(). Nothing re-reads the file while
the process runs, so a lastUsed update made in memory is visible to every
later call immediately, whether or not it has been flushed yet.

Policy (when to prune, when to evict, when a flush is worth it) belongs to
TokenManager in auth/tokens.py. This module only offers the mechanisms:

  prune_expired(now, ttl)  -- drop sessions whose age exceeds ttl
  evict_lru(keep)          -- drop least-recently-used sessions until at most
                              ``keep`` remain (ties broken by insertion order)
  flush(now)               -- write the whole map, stamp every session flushed
  snapshot() / restore()   -- undo a batch of changes whose flush failed

A threading.RLock guards the dict so the store stays consistent even when
FastAPI dispatches a sync handler to its thread pool.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from auth.errors import StorageError
from auth.models import Session
from auth.storage import read_json, write_json

logger = logging.getLogger("admingate.auth")


class SessionStore:
    """Token -> Session mapping with whole-file persistence.

    Usage:
        store = SessionStore(Path("data/sessions-auth.json"))
        store.load()
        store.put(Session(token, now, now))
        store.flush(now)
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._sessions: dict[str, Session] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Replace the in-memory map with the file contents. Returns the count.

        A missing or corrupt file yields an empty map: losing sessions only
        forces a re-login, which is the safe direction.
        """
        try:
            data = read_json(self.path)
        except (OSError, ValueError) as exc:
            logger.warning("Session file %s is unreadable (%s); starting empty", self.path, exc)
            data = None
        sessions: dict[str, Session] = {}
        if isinstance(data, dict):
            for token, record in data.items():
                try:
                    sessions[token] = Session.from_record(token, record)
                except (KeyError, TypeError, ValueError):
                    logger.warning("Skipping malformed session record in %s", self.path)
        with self._lock:
            self._sessions = sessions
        return len(sessions)

    def flush(self, now: float) -> None:
        """Write every session to disk. Raises StorageError on I/O failure."""
        with self._lock:
            snapshot = {token: s.to_record() for token, s in self._sessions.items()}
            try:
                write_json(self.path, snapshot)
            except OSError as exc:
                raise StorageError(f"Could not write session file: {exc}") from exc
            for session in self._sessions.values():
                session.last_flushed_at = now

    # ------------------------------------------------------------------
    # Map access
    # ------------------------------------------------------------------

    def get(self, token: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(token)

    def put(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.token] = session

    def delete(self, token: str) -> bool:
        """Remove ``token``. Returns True if it was present."""
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
            return count

    def snapshot(self) -> dict[str, Session]:
        """Shallow copy of the map, in insertion order, for restore()."""
        with self._lock:
            return dict(self._sessions)

    def restore(self, snapshot: dict[str, Session]) -> None:
        with self._lock:
            self._sessions = dict(snapshot)

    def tokens(self) -> list[str]:
        """Tokens in insertion order."""
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._sessions

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def prune_expired(self, now: float, ttl: float) -> int:
        """Delete sessions older than ``ttl`` seconds. Returns number removed."""
        with self._lock:
            expired = [t for t, s in self._sessions.items() if now - s.created_at > ttl]
            for token in expired:
                del self._sessions[token]
            return len(expired)

    def evict_lru(self, keep: int) -> int:
        """Evict least-recently-used sessions until at most ``keep`` remain.

        sorted() is stable and dict iteration follows insertion order, so two
        sessions with equal last_used_at are evicted oldest-inserted first.
        """
        with self._lock:
            excess = len(self._sessions) - max(keep, 0)
            if excess <= 0:
                return 0
            by_use = sorted(self._sessions.values(), key=lambda s: s.last_used_at)
            for session in by_use[:excess]:
                del self._sessions[session.token]
            return excess
