"""
api/routes/auth.py -- Session authentication REST endpoints.

Routes:
  POST /auth/login    -- email/password login; sets refresh cookie
  GET  /auth/session  -- new access token for the refresh cookie; re-sets cookie
  POST /auth/refresh  -- rotates the refresh cookie; new access token
  POST /auth/logout   -- deletes the session if any; clears cookie; never fails
  GET  /auth/me       -- user behind the bearer access token

Security:
  The refresh secret is only ever sent in an httpOnly, SameSite=Lax cookie
  (and once in the login/refresh body for non-browser clients). The access
  token is only ever sent in the body.
  Cache-Control: no-store on every response that carries a credential.
  Failures are raised as auth.errors.* and rendered by api/main.py.

Handlers are plain `def` so FastAPI runs them in its threadpool; the store's
file I/O and Argon2 verification never block the event loop.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, MeResponse, MessageResponse, SessionResponse, UserPayload
from auth.dependencies import REFRESH_COOKIE, get_current_user, get_session_manager, refresh_secret
from auth.models import User
from auth.sessions import SessionManager
from core.config import get_settings

# Auth policy:
# - POST /auth/login:   public -- login endpoint must be unauthenticated
# - GET  /auth/session: refresh cookie
# - POST /auth/refresh: refresh cookie
# - POST /auth/logout:  public -- clearing a cookie needs no prior auth
# - GET  /auth/me:      bearer access token (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
def login(body: LoginRequest, manager: SessionManager = Depends(get_session_manager)) -> JSONResponse:
    """Authenticate with email and password; set the refresh cookie.

    Returns the same generic 401 for an unknown email and a wrong password.
    """
    grant = manager.login(body.email, body.password)
    resp = _json(LoginResponse.from_grant(grant).model_dump(by_alias=True))
    set_refresh_cookie(resp, grant.refresh_token, grant.refresh_token_expires_at, manager.now())
    return resp


@router.get("/auth/session", response_model=SessionResponse)
def session(request: Request, manager: SessionManager = Depends(get_session_manager)) -> JSONResponse:
    """Issue a fresh access token for the current refresh cookie without rotating it."""
    grant = manager.check_session(refresh_secret(request))
    resp = _json(SessionResponse.from_grant(grant).model_dump(by_alias=True))
    set_refresh_cookie(resp, grant.refresh_token, grant.refresh_token_expires_at, manager.now())
    return resp


@router.post("/auth/refresh", response_model=LoginResponse)
def refresh(request: Request, manager: SessionManager = Depends(get_session_manager)) -> JSONResponse:
    """Redeem the refresh cookie for a new one. A redeemed secret never works twice."""
    grant = manager.refresh(refresh_secret(request))
    resp = _json(LoginResponse.from_grant(grant).model_dump(by_alias=True))
    set_refresh_cookie(resp, grant.refresh_token, grant.refresh_token_expires_at, manager.now())
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, manager: SessionManager = Depends(get_session_manager)) -> JSONResponse:
    """End the session behind the refresh cookie, if any, and clear the cookie."""
    manager.logout(refresh_secret(request))
    resp = _json(MessageResponse(message="Logged out.").model_dump())
    clear_refresh_cookie(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the user the bearer access token was issued to."""
    return MeResponse(user=UserPayload.from_user(current_user))


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_refresh_cookie(response, token: str, expires_at: datetime, now: datetime) -> None:
    """Write the refresh secret as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS in production.
    max_age: whole seconds until the session expires, never negative.
    """
    max_age = max(int((expires_at - now).total_seconds()), 0)
    response.set_cookie(
        REFRESH_COOKIE,
        value=token,
        max_age=max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=get_settings().is_production,
    )


def clear_refresh_cookie(response) -> None:
    response.delete_cookie(
        REFRESH_COOKIE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=get_settings().is_production,
    )


def _json(content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp
