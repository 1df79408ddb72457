"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Access tokens travel only in the Authorization: Bearer <token> header; they
are never placed in a cookie. The refresh secret travels only in the
refreshToken cookie.

get_session_manager() fetches the per-app SessionManager from app.state.
get_current_user() verifies the bearer token and raises AuthenticationError
(rendered as 401 by api/main.py) when it is missing or invalid.

Layer rule: auth/dependencies.py may import from fastapi (for Request) because
this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import AuthenticationError
from auth.models import User
from auth.sessions import INVALID_ACCESS_TOKEN, SessionManager

REFRESH_COOKIE = "refreshToken"


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header[:7].lower() == "bearer ":
        return auth_header[7:].strip() or None
    return None


def refresh_secret(request: Request) -> str | None:
    return request.cookies.get(REFRESH_COOKIE) or None


def get_current_user(request: Request) -> User:
    """Require a valid bearer access token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = bearer_token(request)
    if token is None:
        raise AuthenticationError(INVALID_ACCESS_TOKEN)
    return get_session_manager(request).authenticate_access_token(token)
