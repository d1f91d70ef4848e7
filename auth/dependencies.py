"""
auth/dependencies.py -- FastAPI Depends() helpers: the authorization gate.

The session token is read from, in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "access_token" cookie -- set by sign-up / sign-in for browser clients.

require_session() is the gate. It runs before the route body (FastAPI
resolves dependencies first), so a protected handler is never entered
without a validated, unrevoked token. On success the resolved user id is
attached to request.state.user_id. On any token failure it raises HTTP 401
with the single generic "unauthorized" code; the specific reason is only
logged.

get_current_user() builds on the gate and loads the full User.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the FastAPI dependency injection system. It does not import from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.exceptions import TokenError, UserNotFound
from auth.models import Session, User
from auth.service import AuthService

COOKIE_NAME = "access_token"


def extract_token(request: Request) -> str | None:
    """Return the bearer token or the access_token cookie, whichever comes first."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME) or None


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": "unauthorized", "message": "Authentication required."},
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_session(request: Request) -> Session:
    """Validate the request's session token or halt with 401.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(session: Session = Depends(require_session)): ...
    """
    auth_service = get_auth_service(request)
    try:
        session = auth_service.authorize(extract_token(request))
    except TokenError as exc:
        raise _unauthorized() from exc
    request.state.user_id = session.subject
    return session


def get_current_user(request: Request) -> User:
    """Require a session and return its User. 401 if the account no longer exists."""
    session = require_session(request)
    try:
        return get_auth_service(request).store.find_by_id(session.subject)
    except UserNotFound as exc:
        raise _unauthorized() from exc
