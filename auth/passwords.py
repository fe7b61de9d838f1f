"""
auth/passwords.py -- Password hashing, password policy, display-name cleanup.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). Bcrypt's cost factor
       makes brute-force expensive, which also makes it the implicit rate
       limiter for login and setup. The cost is a setting so tests can run
       at the bcrypt minimum of 4 rounds.

  72-byte limit: bcrypt only looks at the first 72 bytes of its input (4.x+
       raises instead of truncating). validate_password() counts UTF-8 bytes,
       not characters, so a password made of multi-byte text is rejected
       explicitly instead of being silently shortened.

  Timing equalization: dummy_hash() gives login a real bcrypt hash to verify
       against when no credential exists, so "not configured" costs the same
       time as "wrong password" and the two stay indistinguishable.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import re
from functools import lru_cache

import bcrypt

from auth.errors import ValidationError

MIN_PASSWORD_CHARS = 8
MAX_PASSWORD_BYTES = 72
MAX_DISPLAY_NAME = 64
DEFAULT_DISPLAY_NAME = "Admin"

# C0 controls, DEL and C1 controls; Mongolian vowel separator, zero-width
# space/joiners, word joiner and invisible operators;
# LRM/RLM, bidi embeddings/overrides and isolates; byte-order mark.
_UNSAFE_CHARS = re.compile(
    "[\x00-\x1f\x7f-\x9f"
    "\u180e"
    "\u200b-\u200f"
    "\u202a-\u202e"
    "\u2060-\u2064"
    "\u2066-\u2069"
    "\ufeff]"
)


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of ``plain``. Call validate_password() first."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Any failure inside bcrypt (malformed hash, over-long input) is a
    mismatch, never an exception -- callers map False to a generic error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


@lru_cache(maxsize=4)
def dummy_hash(rounds: int = 12) -> str:
    """A throwaway hash at the configured cost, computed once per cost."""
    return hash_password("admingate_timing_dummy", rounds)


def verify_dummy(plain: str, rounds: int = 12) -> bool:
    """Spend one verify's worth of bcrypt work when there is no stored hash.

    Builds the dummy hash on first use, so call it off the event loop.
    """
    return verify_password(plain, dummy_hash(rounds))


# ---------------------------------------------------------------------------
# Input policy
# ---------------------------------------------------------------------------


def validate_password(password: object) -> str:
    """Return ``password`` unchanged if it satisfies the policy.

    Raises ValidationError naming the failing rule otherwise.
    """
    if not isinstance(password, str) or not password:
        raise ValidationError("Password is required")
    if len(password) < MIN_PASSWORD_CHARS:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_CHARS} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return password


def sanitize_display_name(name: object) -> str:
    """Strip invisible and control characters, trim, cap, default to "Admin"."""
    if not isinstance(name, str):
        return DEFAULT_DISPLAY_NAME
    cleaned = _UNSAFE_CHARS.sub("", name).strip()
    cleaned = cleaned[:MAX_DISPLAY_NAME].rstrip()
    return cleaned or DEFAULT_DISPLAY_NAME
