"""
auth/tokens.py -- Opaque bearer token lifecycle and the auth cookie helper.

Security design decisions:
  Tokens: secrets.token_hex(32) gives 256 bits of entropy. Collisions are
       negligible by construction, so create_token() does no uniqueness
       check. Tokens are opaque: all meaning lives in the SessionStore, which
       makes revocation immediate (unlike a signed JWT that stays valid until
       its exp claim).

  Bounded store: every create_token() prunes sessions past the TTL and, if
       the store is still full, evicts least-recently-used sessions so the
       count never exceeds max_sessions once the call returns.

  Durability: membership changes (create, revoke, revoke_all, expiry
       delete) are flushed before returning. Only lastUsed bookkeeping is
       throttled: validate_token() updates it in memory at once but writes it
       back at most once per flush_interval per session. A crash loses at most
       flush_interval seconds of lastUsed history, never a revocation.

  Failure policy: StorageError from create_token() and revoke_all()
       propagates (security-critical). Housekeeping flushes (lastUsed
       write-back, expiry delete) and revoke_token() log and carry on.

Layer rule: no imports from api/. Import from core/ is not needed -- the
service passes plain numbers in.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Callable, Optional

from auth.errors import StorageError
from auth.models import Session
from auth.sessions import SessionStore

logger = logging.getLogger("admingate.auth")

COOKIE_NAME = "token"


def generate_token() -> str:
    """Return a new opaque token: 64 hex chars, 256 bits of entropy."""
    return secrets.token_hex(32)


class TokenManager:
    """Creates, validates and revokes session tokens on top of a SessionStore.

    Args:
        store:          The authoritative SessionStore (already loaded).
        ttl:            Maximum session age in seconds, measured from creation.
        max_sessions:   Capacity bound enforced on every create_token().
        flush_interval: Minimum seconds between lastUsed write-backs of one
                        session.
        clock:          Returns "now" in epoch seconds. Tests inject a fake.
    """

    def __init__(
        self,
        store: SessionStore,
        ttl: float,
        max_sessions: int,
        flush_interval: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.max_sessions = max_sessions
        self.flush_interval = flush_interval
        self.clock = clock

    def create_token(self) -> str:
        """Issue a new session token and persist it before returning.

        Raises StorageError if the session file cannot be written. The map is
        restored to its state before the call, so sessions pruned or evicted
        for the new one stay present in memory as they still are on disk.
        """
        now = self.clock()
        token = generate_token()
        before = self.store.snapshot()
        pruned = self.store.prune_expired(now, self.ttl)
        evicted = self.store.evict_lru(self.max_sessions - 1)
        if evicted:
            logger.info("Session cap (%d) reached; evicted %d least-recently-used session(s)", self.max_sessions, evicted)
        self.store.put(Session(token=token, created_at=now, last_used_at=now, last_flushed_at=now))
        try:
            self.store.flush(now)
        except StorageError:
            self.store.restore(before)
            raise
        logger.debug("Session created (pruned=%d, active=%d)", pruned, len(self.store))
        return token

    def validate_token(self, token: Optional[str]) -> bool:
        """Return True if ``token`` names a live session, refreshing lastUsed."""
        if not token:
            return False
        session = self.store.get(token)
        if session is None:
            return False
        now = self.clock()
        if now - session.created_at > self.ttl:
            self.store.delete(token)
            self._flush_quietly(now, "expired session removal")
            return False
        session.last_used_at = now
        if now - session.last_flushed_at > self.flush_interval:
            self._flush_quietly(now, "lastUsed write-back")
        return True

    def revoke_token(self, token: Optional[str]) -> None:
        """Delete ``token`` if present and flush. Never raises."""
        if not token:
            return
        self.store.delete(token)
        self._flush_quietly(self.clock(), "token revocation")

    def revoke_all(self) -> int:
        """Drop every session and flush. Returns the number revoked.

        Raises StorageError: this runs after a credential change, and a
        silently failed flush would resurrect old sessions on restart.
        """
        count = self.store.clear()
        self.store.flush(self.clock())
        logger.info("Revoked all sessions (%d)", count)
        return count

    def active_count(self) -> int:
        return len(self.store)

    def _flush_quietly(self, now: float, reason: str) -> None:
        try:
            self.store.flush(now)
        except StorageError as exc:
            logger.warning("Session flush failed during %s: %s", reason, exc)


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": cookie sent on same-site navigations and GET cross-site
        links, but not on cross-site POST -- CSRF mitigation for most cases.
    secure: only sent over HTTPS when SECURE_COOKIES=true (behind a proxy).
    max_age: matches the session TTL so cookie and session expire together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )
