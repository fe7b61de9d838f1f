"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond mapping to and
from the on-disk JSON shape). Stores and the service do the work.

The on-disk keys are camelCase (passwordHash, lastUsed, ...) so data files
written by earlier installs of the service load unchanged. Python attributes
are snake_case; the to_record / from_record pair is the only place that
knows about both spellings.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class AdminCredential:
    """The singleton admin record. Its existence means "configured".

    session_secret is None when the secret is supplied externally through
    SESSION_SECRET -- that value is never written to disk on the caller's
    behalf.
    """

    password_hash: str
    display_name: str
    created_at: str  # ISO 8601, UTC
    session_secret: Optional[str] = None

    def to_record(self) -> dict:
        return {
            "passwordHash": self.password_hash,
            "displayName": self.display_name,
            "sessionSecret": self.session_secret,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, data: dict) -> "AdminCredential":
        """Build from a decoded auth.json. Raises KeyError/TypeError on bad shape."""
        password_hash = data["passwordHash"]
        if not isinstance(password_hash, str) or not password_hash:
            raise TypeError("passwordHash must be a non-empty string")
        return cls(
            password_hash=password_hash,
            display_name=str(data.get("displayName") or "Admin"),
            session_secret=data.get("sessionSecret"),
            created_at=str(data.get("createdAt") or ""),
        )


@dataclass
class Session:
    """One bearer session. Timestamps are epoch seconds (float).

    last_flushed_at is bookkeeping for the throttled lastUsed write-back and
    is not persisted: after a reload it starts equal to last_used_at, which
    is exactly what the disk copy holds.
    """

    token: str
    created_at: float
    last_used_at: float
    last_flushed_at: float = 0.0

    def to_record(self) -> dict:
        # Milliseconds on disk, matching the historical file format.
        return {
            "created": int(self.created_at * 1000),
            "lastUsed": int(self.last_used_at * 1000),
        }

    @classmethod
    def from_record(cls, token: str, data: dict) -> "Session":
        created = float(data["created"]) / 1000
        last_used = float(data.get("lastUsed", data["created"])) / 1000
        return cls(token=token, created_at=created, last_used_at=last_used, last_flushed_at=last_used)
