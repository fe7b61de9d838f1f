"""
auth/service.py -- AuthService: the single entry point the app talks to.

Composes CredentialStore, SessionStore and TokenManager, and owns the one
piece of cross-call state the subsystem has: the setup mutex.

Concurrency model:
  The app runs on one asyncio event loop. The only suspension points in
  this module are the bcrypt calls, pushed to a worker thread with
  asyncio.to_thread() so the loop keeps serving requests while a hash runs.
  Every decision made before such a suspension is re-checked after it:

  setup_user()      -- the setup mutex is taken with a non-blocking acquire
                       before anything else, so two overlapping setups can
                       never both pass the "not configured" check. After the
                       hash the configured state is checked again, and the
                       final write is an atomic create-if-absent on disk.
  login()           -- after verify, the stored hash must still be the one
                       that was verified; a concurrent change_password()
                       turns the login into a plain "invalid credentials".
  change_password() -- same re-check before the new hash is saved.

Error surface: ValidationError, AuthenticationError, ConflictError,
NotConfiguredError, StorageError (auth/errors.py).
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from auth.credentials import CredentialStore
from auth.errors import AuthenticationError, ConflictError, NotConfiguredError
from auth.models import AdminCredential
from auth.passwords import (
    hash_password,
    sanitize_display_name,
    validate_password,
    verify_dummy,
    verify_password,
)
from auth.sessions import SessionStore
from auth.tokens import TokenManager
from core.config import Settings

logger = logging.getLogger("admingate.auth")


class AuthService:
    """Single-admin password auth with opaque, bounded, expiring sessions.

    Usage:
        service = AuthService(get_settings())
        token = await service.setup_user("goodpass1", "Alice")
        service.validate_token(token)   # True
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time) -> None:
        self.settings = settings
        self.credentials = CredentialStore(settings.credential_path)
        self.sessions = SessionStore(settings.sessions_path)
        loaded = self.sessions.load()
        self.tokens = TokenManager(
            self.sessions,
            ttl=settings.token_ttl_seconds,
            max_sessions=settings.max_sessions,
            flush_interval=settings.session_flush_interval_seconds,
            clock=clock,
        )
        self._setup_lock = threading.Lock()
        logger.info("Auth service initialized (configured=%s, sessions=%d)", self.is_configured(), loaded)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def is_configured(self) -> bool:
        return self.credentials.is_configured()

    def get_profile(self) -> Optional[dict]:
        """Public view of the credential: display name and creation time only.

        The password hash and session secret never leave this module through
        here; this is what HTTP handlers may show to callers.
        """
        cred = self.credentials.load()
        if cred is None:
            return None
        return {"displayName": cred.display_name, "createdAt": cred.created_at}

    def session_secret(self) -> Optional[str]:
        """The per-installation secret: SESSION_SECRET if set, else the stored one."""
        if self.settings.session_secret:
            return self.settings.session_secret
        cred = self.credentials.load()
        return cred.session_secret if cred is not None else None

    # ------------------------------------------------------------------
    # Setup / login / password change
    # ------------------------------------------------------------------

    async def setup_user(self, password: object, display_name: object = None) -> str:
        """Create the admin credential and return the first session token.

        Raises ConflictError if already configured or another setup is in
        flight, ValidationError on bad input, StorageError on write failure.
        """
        if not self._setup_lock.acquire(blocking=False):
            raise ConflictError()
        try:
            if self.is_configured():
                raise ConflictError()
            validate_password(password)
            name = sanitize_display_name(display_name)
            password_hash = await asyncio.to_thread(hash_password, password, self.settings.bcrypt_rounds)
            if self.is_configured():
                raise ConflictError()
            credential = AdminCredential(
                password_hash=password_hash,
                display_name=name,
                session_secret=None if self.settings.session_secret else secrets.token_hex(32),
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            self.credentials.create(credential)
            logger.info("Admin credential configured")
            return self.tokens.create_token()
        finally:
            self._setup_lock.release()

    async def login(self, password: object) -> str:
        """Return a new session token if ``password`` matches.

        Not configured and wrong password raise the identical
        AuthenticationError, after the same amount of bcrypt work.
        """
        cred = self.credentials.load()
        candidate = password if isinstance(password, str) else ""
        if cred is None:
            await asyncio.to_thread(verify_dummy, candidate, self.settings.bcrypt_rounds)
            raise AuthenticationError()
        matched = await asyncio.to_thread(verify_password, candidate, cred.password_hash)
        if not matched or not self._hash_unchanged(cred.password_hash):
            logger.info("Login failed")
            raise AuthenticationError()
        return self.tokens.create_token()

    async def change_password(self, old_password: object, new_password: object) -> str:
        """Replace the password, revoke every session, return one fresh token."""
        cred = self.credentials.load()
        if cred is None:
            raise NotConfiguredError()
        candidate = old_password if isinstance(old_password, str) else ""
        if not await asyncio.to_thread(verify_password, candidate, cred.password_hash):
            raise AuthenticationError("Invalid current password")
        validate_password(new_password)
        new_hash = await asyncio.to_thread(hash_password, new_password, self.settings.bcrypt_rounds)
        if not self._hash_unchanged(cred.password_hash):
            raise AuthenticationError("Invalid current password")
        cred.password_hash = new_hash
        self.credentials.save(cred)
        self.tokens.revoke_all()
        logger.info("Admin password changed; all sessions revoked")
        return self.tokens.create_token()

    def _hash_unchanged(self, expected: str) -> bool:
        current = self.credentials.load()
        return current is not None and current.password_hash == expected

    # ------------------------------------------------------------------
    # Token pass-throughs
    # ------------------------------------------------------------------

    def validate_token(self, token: Optional[str]) -> bool:
        return self.tokens.validate_token(token)

    def revoke_token(self, token: Optional[str]) -> None:
        self.tokens.revoke_token(token)

    def revoke_all(self) -> int:
        return self.tokens.revoke_all()
