"""
auth/tokens.py -- Signed, time-boxed access tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the configured secret
       and carry sub (user id), email, role, name, iat, and exp. Verification
       returns None on any failure -- the session manager turns that into an
       AuthenticationError and the route layer into a 401.

  No revocation list: the server keeps no record of issued access tokens.
       Their compromise window is bounded by the short TTL alone, which keeps
       every authenticated request free of a store lookup.

  Expiry is checked here against an explicit clock value rather than by
       jose, so the evaluation instant is the caller's and a token whose exp
       equals "now" is already dead.

Layer rule: stateless. No imports from api/, core/, or auth/store.py.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

if TYPE_CHECKING:
    from auth.models import User

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "email", "role", "name", "iat", "exp")


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Issue / verify
# ---------------------------------------------------------------------------


def issue_access_token(
    user: User,
    secret: str,
    ttl_seconds: int,
    now: datetime | None = None,
) -> IssuedToken:
    """Encode a signed JWT for user that expires ttl_seconds after now.

    Args:
        user:        The account the token speaks for.
        secret:      HS256 signing secret (Settings.access_token_secret).
        ttl_seconds: Lifetime of the token.
        now:         Issue instant. Defaults to the current UTC time; the
                     session manager passes its own clock value.
    """
    issued = (now or _utcnow()).replace(microsecond=0)
    expires = issued + timedelta(seconds=ttl_seconds)
    payload = {
        "sub": user.id,
        "email": user.email,
        "role": user.role,
        "name": user.name,
        "iat": int(issued.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return IssuedToken(token=jwt.encode(payload, secret, algorithm=_ALGORITHM), expires_at=expires)


def verify_token(token: str | None, secret: str, now: datetime | None = None) -> dict | None:
    """Verify signature and expiry. Returns the claims dict or None on any failure.

    Returning None (rather than raising) keeps the caller simple: any invalid
    token is treated as unauthenticated.
    """
    if not token or token.count(".") != 2:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"verify_exp": False})
    except JWTError:
        return None
    if not _signature_is_canonical(token):
        return None
    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        return None
    exp = payload["exp"]
    if not isinstance(exp, int) or isinstance(exp, bool):
        return None
    if exp <= int((now or _utcnow()).timestamp()):
        return None
    return payload


def _signature_is_canonical(token: str) -> bool:
    # base64 decoding ignores the spare low bits of the final character, so
    # two different signature strings can decode to the same MAC. Only the
    # exact encoding we would have produced is accepted.
    signature = token.rsplit(".", 1)[1].encode("ascii", errors="replace")
    try:
        return base64url_encode(base64url_decode(signature)) == signature
    except (binascii.Error, ValueError):
        return False
