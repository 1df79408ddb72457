"""
auth/sessions.py -- Login, refresh-token rotation, session lookup, and logout.

Lifecycle of one refresh credential:
  Issued   -- record stored with the secret's hash; not expired.
  Rotated  -- redeemed by refresh(); the record is deleted and a new Issued
              credential takes its place.
  Revoked  -- deleted by logout().
  Expired  -- past expires_at; deleted by the next sweep.
All terminal states are represented by the record being absent.

Security:
  Single-use rotation: refresh() deletes the old record before minting the
  new one. A second redemption of the same secret -- by the client or by
  whoever stole it -- finds nothing and fails. remove_session() reporting
  "nothing removed" is treated the same way, which closes the window where
  two concurrent refreshes both resolve the old record.

  Uniform failures: unknown email and wrong password raise the same
  AuthenticationError with the same message, after the same amount of
  password hashing work. Refresh-side failures never say whether the secret
  was unknown, expired, replayed, or orphaned.

  Every session-sensitive entry point sweeps expired records first, using one
  clock reading per call.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from auth.errors import AuthenticationError
from auth.models import Session, User
from auth.security import burn_password_check, generate_random_token, hash_token, verify_password
from auth.store import CredentialStore, is_live, parse_timestamp
from auth.tokens import IssuedToken, issue_access_token, verify_token

logger = logging.getLogger("authgate.sessions")

_REFRESH_TOKEN_BYTES = 48

INVALID_CREDENTIALS = "Invalid email or password."
NO_ACTIVE_SESSION = "No active session."
INVALID_REFRESH_TOKEN = "Invalid refresh token."
INVALID_ACCESS_TOKEN = "Invalid or expired access token."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResolvedSession:
    user: User
    session: Session
    secret: str


@dataclass(frozen=True)
class SessionGrant:
    """An access token plus the refresh secret the client should hold next.

    login() and refresh() mint a new secret; check_session() hands back the
    one it was given.
    """

    user: User
    access_token: IssuedToken
    refresh_token: str
    refresh_token_expires_at: datetime


class SessionManager:
    """Orchestrates the credential store, password verifier, and token issuer.

    Args:
        store:               Credential store holding users and sessions.
        secret:              Access-token signing secret.
        access_ttl_seconds:  Access-token lifetime.
        refresh_ttl_seconds: Refresh-session lifetime.
        clock:               Returns the current aware UTC datetime. Injected so
                             expiry behaviour is testable without sleeping.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        secret: str,
        access_ttl_seconds: int,
        refresh_ttl_seconds: int,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self._secret = secret
        self._access_ttl = access_ttl_seconds
        self._refresh_ttl = refresh_ttl_seconds
        self._clock = clock

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> SessionGrant:
        """Exchange an email/password pair for an access token and refresh secret.

        Raises AuthenticationError for an unknown email or a wrong password,
        identically.
        """
        user = self.store.find_user_by_email(email)
        if user is None:
            burn_password_check(password)
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not verify_password(password, user.password_hash):
            raise AuthenticationError(INVALID_CREDENTIALS)

        now = self._clock()
        self.store.clear_expired_sessions(now)
        return self._grant(user, now)

    def resolve_session(self, secret: str | None, message: str = NO_ACTIVE_SESSION) -> ResolvedSession:
        """Find the live session and owning user behind a refresh secret.

        A session that is past its expiry at this instant, or whose user no
        longer exists, is deleted and reported as absent.
        """
        now = self._clock()
        self.store.clear_expired_sessions(now)
        if not secret:
            raise AuthenticationError(message)

        session = self.store.find_session_by_hash(hash_token(secret))
        if session is None:
            raise AuthenticationError(message)
        if not is_live(session, now):
            self.store.remove_session(session.id)
            raise AuthenticationError(message)

        user = self.store.find_user_by_id(session.user_id)
        if user is None:
            logger.info("Removing session %s for missing user %s", session.id, session.user_id)
            self.store.remove_session(session.id)
            raise AuthenticationError(message)
        return ResolvedSession(user=user, session=session, secret=secret)

    def check_session(self, secret: str | None) -> SessionGrant:
        """Issue a new access token for a live refresh secret without rotating it."""
        resolved = self.resolve_session(secret)
        access = issue_access_token(resolved.user, self._secret, self._access_ttl, now=self._clock())
        return SessionGrant(
            user=resolved.user,
            access_token=access,
            refresh_token=resolved.secret,
            refresh_token_expires_at=_expiry_of(resolved.session),
        )

    def refresh(self, secret: str | None) -> SessionGrant:
        """Rotate a refresh secret: delete its session, mint a new one, issue an access token."""
        resolved = self.resolve_session(secret, INVALID_REFRESH_TOKEN)
        if not self.store.remove_session(resolved.session.id):
            # Another request redeemed this secret between our lookup and delete.
            raise AuthenticationError(INVALID_REFRESH_TOKEN)
        return self._grant(resolved.user, self._clock())

    def logout(self, secret: str | None) -> None:
        """Delete the session behind secret if there is one. Never fails on a missing session."""
        try:
            resolved = self.resolve_session(secret)
        except AuthenticationError:
            return
        self.store.remove_session(resolved.session.id)

    def now(self) -> datetime:
        return self._clock()

    def sweep(self) -> int:
        """Delete every non-live session. Returns the number removed."""
        return self.store.clear_expired_sessions(self._clock())

    def authenticate_access_token(self, token: str | None) -> User:
        """Return the user an unexpired, correctly signed access token speaks for."""
        claims = verify_token(token, self._secret, now=self._clock())
        if claims is None:
            raise AuthenticationError(INVALID_ACCESS_TOKEN)
        user = self.store.find_user_by_id(str(claims["sub"]))
        if user is None:
            raise AuthenticationError(INVALID_ACCESS_TOKEN)
        return user

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _grant(self, user: User, now: datetime) -> SessionGrant:
        secret, session = self._mint_session(user, now)
        access = issue_access_token(user, self._secret, self._access_ttl, now=now)
        return SessionGrant(
            user=user,
            access_token=access,
            refresh_token=secret,
            refresh_token_expires_at=_expiry_of(session),
        )

    def _mint_session(self, user: User, now: datetime) -> tuple[str, Session]:
        secret = generate_random_token(_REFRESH_TOKEN_BYTES)
        session = Session(
            id=str(uuid.uuid4()),
            user_id=user.id,
            refresh_token_hash=hash_token(secret),
            created_at=now.isoformat(),
            expires_at=(now + timedelta(seconds=self._refresh_ttl)).isoformat(),
        )
        self.store.create_session(session)
        return secret, session


def _expiry_of(session: Session) -> datetime:
    expires = parse_timestamp(session.expires_at)
    if expires is None:
        raise ValueError(f"session {session.id} has no usable expiry")
    return expires
