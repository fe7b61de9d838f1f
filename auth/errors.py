"""
auth/errors.py -- Typed failures raised by the auth service.

Every error carries a stable machine-readable ``code``. The API layer maps
each class to an HTTP status and wraps ``code`` + ``str(exc)`` in the shared
ErrorResponse envelope, so route handlers never build error bodies by hand.

Messages are deliberately generic wherever specificity would reveal whether
the service is configured or whether a password was close. Only purely local
input constraints (length limits) get specific messages.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every failure the auth service raises on purpose."""

    code = "auth_error"


class ValidationError(AuthError):
    """Bad password or display-name input. User-correctable."""

    code = "validation_error"


class AuthenticationError(AuthError):
    """Credentials did not check out. Never says why."""

    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class ConflictError(AuthError):
    """Setup attempted when the service is configured or a setup is in flight."""

    code = "already_configured"

    def __init__(self, message: str = "Already configured") -> None:
        super().__init__(message)


class NotConfiguredError(AuthError):
    """An operation that needs the admin credential ran before setup."""

    code = "setup_required"

    def __init__(self, message: str = "Not configured") -> None:
        super().__init__(message)


class StorageError(AuthError):
    """Reading or writing a persisted record failed."""

    code = "storage_error"
