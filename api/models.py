"""
API request and response models for the authgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

JSON keys are camelCase (accessToken, refreshTokenExpiresAt, ...) for the
browser client; Python attribute names stay snake_case. Dump with
model_dump(by_alias=True).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from auth.sessions import SessionGrant

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _iso(value: datetime) -> str:
    return value.isoformat()


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /auth/login.

    email is trimmed before the emptiness check; password is taken verbatim.
    """

    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=1024)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserPayload(BaseModel):
    """Public view of a user. type repeats role for older clients."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role: str
    type: str

    @classmethod
    def from_user(cls, user: User) -> "UserPayload":
        return cls(id=user.id, email=user.email, name=user.name, role=user.role, type=user.role)


class SessionResponse(BaseModel):
    """Response for GET /auth/session -- the refresh secret stays in the cookie."""

    model_config = _CAMEL

    user: UserPayload
    access_token: str
    access_token_expires_at: str

    @classmethod
    def from_grant(cls, grant: SessionGrant) -> "SessionResponse":
        return cls(
            user=UserPayload.from_user(grant.user),
            access_token=grant.access_token.token,
            access_token_expires_at=_iso(grant.access_token.expires_at),
        )


class LoginResponse(BaseModel):
    """Response for POST /auth/login and POST /auth/refresh."""

    model_config = _CAMEL

    user: UserPayload
    access_token: str
    access_token_expires_at: str
    refresh_token: str
    refresh_token_expires_at: str

    @classmethod
    def from_grant(cls, grant: SessionGrant) -> "LoginResponse":
        return cls(
            user=UserPayload.from_user(grant.user),
            access_token=grant.access_token.token,
            access_token_expires_at=_iso(grant.access_token.expires_at),
            refresh_token=grant.refresh_token,
            refresh_token_expires_at=_iso(grant.refresh_token_expires_at),
        )


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserPayload


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Structured error body. Every non-2xx response uses this shape."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
