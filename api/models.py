"""
API request and response models for AdminGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire names are camelCase (displayName, oldPassword, ...) to match the
browser UI; Python attribute names stay snake_case via Field(alias=...).

Password fields are plain optional strings on purpose: the password policy
lives in auth/passwords.py and must produce its own specific messages
("at least 8 characters"), not a generic 422 from the schema layer. The
max_length caps only bound request size.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

_MAX_INPUT = 1024

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SetupRequest(BaseModel):
    """Request body for POST /api/v1/auth/setup."""

    model_config = ConfigDict(populate_by_name=True)

    password: Optional[str] = Field(default=None, max_length=_MAX_INPUT)
    display_name: Optional[str] = Field(default=None, alias="displayName", max_length=_MAX_INPUT)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    password: Optional[str] = Field(default=None, max_length=_MAX_INPUT)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/change-password."""

    model_config = ConfigDict(populate_by_name=True)

    old_password: Optional[str] = Field(default=None, alias="oldPassword", max_length=_MAX_INPUT)
    new_password: Optional[str] = Field(default=None, alias="newPassword", max_length=_MAX_INPUT)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    """Returned by setup, login and change-password.

    The token is also set as an httpOnly cookie; the body copy is for
    non-browser clients that send it back as a Bearer or X-Auth-Token header.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ok: bool = True
    token: str
    display_name: Optional[str] = Field(default=None, alias="displayName")


class StatusResponse(BaseModel):
    """Response for GET /api/v1/auth/status.

    display_name is only filled in for a caller holding a valid session, so
    anonymous callers learn nothing beyond "is setup done".
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    setup_done: bool = Field(alias="setupDone")
    logged_in: bool = Field(alias="loggedIn")
    display_name: Optional[str] = Field(default=None, alias="displayName")


class ProfileResponse(BaseModel):
    """Response for GET /api/v1/auth/me. Never includes hash or secret."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    display_name: str = Field(alias="displayName")
    created_at: str = Field(alias="createdAt")


class OkResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    setup: str  # "done" or "required"
