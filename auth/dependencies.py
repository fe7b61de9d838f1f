"""
auth/dependencies.py -- The authorization decision and its FastAPI helpers.

Token sources are checked in priority order:
  1. "token" cookie           -- set by the browser login/setup flow.
  2. X-Auth-Token header      -- scripts and the UI's fetch() calls.
  3. Authorization: Bearer    -- generic API clients.

authorize() is pure decision logic: given the configured state, the request
path, the resolved token and whether the client wants HTML, it returns an
AuthDecision. The HTTP middleware in api/main.py turns a denial into either a
redirect (browsers) or a structured 401 (everything else).

authorize_channel() is the same token check for channels that cannot follow
a redirect (the websocket endpoint). require_session() is the FastAPI
dependency for routes that need the validated token itself.

Layer rule: may import from fastapi/starlette (Request, HTTPException)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlencode

from fastapi import HTTPException, Request
from starlette.requests import HTTPConnection

from auth.tokens import COOKIE_NAME

if TYPE_CHECKING:
    from auth.service import AuthService

# Reachable without a session, configured or not.
PUBLIC_PATHS: frozenset[str] = frozenset(
    {
        "/api/v1/health",
        "/api/v1/auth/status",
        "/api/v1/auth/setup",
        "/api/v1/auth/login",
        "/setup",
        "/login",
    }
)


class Outcome(str, enum.Enum):
    ALLOW = "allow"
    SETUP_REQUIRED = "setup_required"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class AuthDecision:
    outcome: Outcome
    token: Optional[str] = None
    redirect: Optional[str] = None  # set only for HTML clients

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW


def resolve_token(conn: HTTPConnection) -> Optional[str]:
    """Pull the session token from cookie, X-Auth-Token, then Bearer header."""
    token = conn.cookies.get(COOKIE_NAME)
    if token:
        return token
    token = conn.headers.get("X-Auth-Token")
    if token:
        return token
    auth_header = conn.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return None


def accepts_html(conn: HTTPConnection) -> bool:
    return "text/html" in conn.headers.get("Accept", "")


def authorize(service: AuthService, path: str, token: Optional[str], wants_html: bool = False) -> AuthDecision:
    """Decide whether a request for ``path`` carrying ``token`` may proceed.

    - Public paths always pass (the setup and login endpoints must be
      reachable to leave the unauthenticated state).
    - Unconfigured: everything else is SETUP_REQUIRED.
    - Configured: the token must validate, else UNAUTHORIZED. Browsers
      asking for a page get sent to /login; API paths always get a 401.
    """
    if path in PUBLIC_PATHS:
        # Not validated here, so not attached.
        return AuthDecision(Outcome.ALLOW)
    if not service.is_configured():
        return AuthDecision(Outcome.SETUP_REQUIRED, redirect="/setup" if wants_html else None)
    if service.validate_token(token):
        return AuthDecision(Outcome.ALLOW, token=token)
    redirect = None
    if wants_html and not path.startswith("/api/"):
        redirect = "/login?" + urlencode({"next": path}, safe="/")
    return AuthDecision(Outcome.UNAUTHORIZED, redirect=redirect)


def authorize_channel(service: AuthService, token: Optional[str]) -> bool:
    """Token-only check for persistent channels (websockets). No redirects."""
    return service.validate_token(token)


def require_session(request: Request) -> str:
    """Return the request's validated token. Raises HTTP 401 if there is none.

    The authorization middleware stores the token on request.state after a
    successful check. Falling back to a fresh check keeps the dependency
    correct on routes the middleware treats as public.

    Use as a FastAPI dependency:
        @router.post("/protected")
        async def route(token: str = Depends(require_session)): ...
    """
    token = getattr(request.state, "auth_token", None)
    if token:
        return token
    token = resolve_token(request)
    if token and request.app.state.auth.validate_token(token):
        return token
    raise HTTPException(
        status_code=401,
        detail={"code": "unauthorized", "message": "Authentication required."},
    )
