"""
api/routes/v1/auth.py -- Setup, login and session management endpoints.

Routes:
  GET  /api/v1/auth/status            -- setup/login state (public)
  POST /api/v1/auth/setup             -- one-time admin setup; sets cookie
  POST /api/v1/auth/login             -- password login; sets cookie
  POST /api/v1/auth/logout            -- revokes the current session
  POST /api/v1/auth/change-password   -- new password, revokes every session
  GET  /api/v1/auth/me                -- display name + creation time

Security:
  Setup and login are rate-limited per client IP (AUTH_RATE_LIMIT). The
  bcrypt cost is the second line of defense.
  Login returns one generic error for "not configured" and "wrong password"
  so the response never reveals which one applied.
  Cache-Control: no-store on every response that carries a token.

Errors: handlers raise auth.errors.* and let the exception handlers in
api/main.py map them to status codes and the ErrorResponse envelope.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import (
    ChangePasswordRequest,
    LoginRequest,
    OkResponse,
    ProfileResponse,
    SessionResponse,
    SetupRequest,
    StatusResponse,
)
from auth.dependencies import require_session, resolve_token
from auth.service import AuthService
from auth.tokens import COOKIE_NAME, set_auth_cookie

# Auth policy:
# - GET  /api/v1/auth/status:          public -- the UI decides between setup and login pages
# - POST /api/v1/auth/setup:           public -- only succeeds while unconfigured
# - POST /api/v1/auth/login:           public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:          requires session (require_session)
# - POST /api/v1/auth/change-password: requires session (require_session)
# - GET  /api/v1/auth/me:              requires session (require_session)
router = APIRouter()


def _session_response(service: AuthService, token: str) -> JSONResponse:
    """Build the JSON body for a freshly issued token and set the cookie."""
    profile = service.get_profile() or {}
    body = SessionResponse(token=token, display_name=profile.get("displayName"))
    resp = JSONResponse(status_code=200, content=body.model_dump(by_alias=True))
    set_auth_cookie(
        resp,
        token,
        max_age=service.settings.token_ttl_seconds,
        secure=service.settings.secure_cookies,
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/status", response_model=StatusResponse)
async def status(request: Request) -> StatusResponse:
    """Report whether setup is done and whether the caller is logged in."""
    service: AuthService = request.app.state.auth
    setup_done = service.is_configured()
    logged_in = setup_done and service.validate_token(resolve_token(request))
    profile = service.get_profile() if logged_in else None
    return StatusResponse(
        setup_done=setup_done,
        logged_in=logged_in,
        display_name=profile["displayName"] if profile else None,
    )


@limiter.limit(AUTH_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/setup", response_model=SessionResponse)
async def setup(request: Request, body: SetupRequest) -> JSONResponse:
    """Create the admin credential. 409 once the service is configured."""
    service: AuthService = request.app.state.auth
    token = await service.setup_user(body.password, body.display_name)
    return _session_response(service, token)


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/auth/login", response_model=SessionResponse)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Exchange the admin password for a new session token."""
    service: AuthService = request.app.state.auth
    token = await service.login(body.password)
    return _session_response(service, token)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=OkResponse)
async def logout(request: Request, token: str = Depends(require_session)) -> JSONResponse:
    """Revoke the caller's session and clear the cookie."""
    service: AuthService = request.app.state.auth
    service.revoke_token(token)
    resp = JSONResponse(content=OkResponse().model_dump())
    resp.delete_cookie(COOKIE_NAME)
    return resp


@router.post("/auth/change-password", response_model=SessionResponse)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    token: str = Depends(require_session),
) -> JSONResponse:
    """Change the admin password.

    Every existing session, including the caller's, is revoked; the response
    carries the single replacement token.
    """
    service: AuthService = request.app.state.auth
    new_token = await service.change_password(body.old_password, body.new_password)
    return _session_response(service, new_token)


@router.get("/auth/me", response_model=ProfileResponse)
async def me(request: Request, token: str = Depends(require_session)) -> ProfileResponse:
    """Return the public part of the admin credential."""
    service: AuthService = request.app.state.auth
    profile = service.get_profile()
    if profile is None:
        raise HTTPException(
            status_code=409,
            detail={"code": "setup_required", "message": "Setup required."},
        )
    return ProfileResponse(display_name=profile["displayName"], created_at=profile["createdAt"])
