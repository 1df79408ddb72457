"""
auth/store.py -- JSON snapshot persistence layer for auth entities.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_user / _row_to_session are the mappers. The session manager never
touches files directly.

Storage model:
  Each collection (users, sessions) is one JSON array on disk, loaded into an
  in-memory cache on first use and kept for the life of the process. Every
  mutation is a whole-collection rewrite: read current list -> build new list
  -> write snapshot -> swap cache. Snapshots are written to a temp file in the
  same directory and moved into place with os.replace(), so a crash mid-write
  leaves the previous snapshot intact.

Concurrency:
  One RLock per collection serializes read-modify-write sequences, so two
  racing logins cannot lose each other's session. Readers do not take the
  lock; they see the last list that was committed to disk. There is no
  cross-process coordination -- one process owns the data directory.

Corruption:
  An unparsable snapshot is logged as a warning and reset to an empty
  collection instead of crashing the service. A single record that cannot be
  mapped is dropped the same way and the snapshot rewritten without it.

Data dir: auth/data/ by default (users.json, sessions.json).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from auth.errors import StoreError
from auth.models import Role, Session, User
from auth.security import hash_password

logger = logging.getLogger("authgate.store")

_DEFAULT_DATA_DIR = Path(__file__).parent / "data"

# (email, display name, role, initial password) created by seed_default_users().
DEFAULT_USERS: tuple[tuple[str, str, Role, str], ...] = (
    ("prueba@usuario.com", "Cliente de Prueba", Role.customer, "1234"),
    ("local@comercio.com", "Comercio de Prueba", Role.merchant, "1234"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_live(session: Session, now: datetime) -> bool:
    """A session is live iff it is unrevoked and expires strictly after now.

    An unparsable expires_at counts as expired.
    """
    if session.revoked_at:
        return False
    expires = parse_timestamp(session.expires_at)
    return expires is not None and expires > now


# ---------------------------------------------------------------------------
# Snapshot collection
# ---------------------------------------------------------------------------


class _JsonCollection:
    """A JSON array file mirrored by a process-lifetime list of records.

    load() reads the file once; commit() durably replaces the file and then
    the cache. Callers hold self.lock around any load-mutate-commit sequence.
    """

    def __init__(self, path: Path, to_record: Callable[[dict], object]) -> None:
        self.path = path
        self.lock = threading.RLock()
        self._to_record = to_record
        self._records: list | None = None

    def load(self) -> list:
        records = self._records
        if records is not None:
            return records
        with self.lock:
            if self._records is None:
                rows = self._read()
                records = []
                for row in rows:
                    try:
                        records.append(self._to_record(row))
                    except StoreError as exc:
                        logger.warning("Dropping unreadable record in %s: %s", self.path, exc)
                if len(records) != len(rows):
                    self._write([asdict(r) for r in records])
                self._records = records
            return self._records

    def commit(self, records: list) -> None:
        self._write([asdict(r) for r in records])
        self._records = records

    def invalidate(self) -> None:
        with self.lock:
            self._records = None

    def _read(self) -> list[dict]:
        try:
            if not self.path.exists():
                self._write([])
                return []
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Could not read {self.path}: {exc}") from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = None
        if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
            logger.warning("Could not parse %s -- resetting it to an empty collection", self.path)
            self._write([])
            return []
        return data

    def _write(self, rows: list[dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(rows, fh, indent=2)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StoreError(f"Could not write {self.path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for User and Session records.

    Usage:
        store = CredentialStore()                  # auth/data/
        store = CredentialStore("/var/lib/authgate")
        store.seed_default_users()
        user = store.find_user_by_email("prueba@usuario.com")
        store.create_session(session)
        store.clear_expired_sessions()
    """

    def __init__(self, data_dir: str | Path | None = None) -> None:
        self.data_dir = Path(data_dir) if data_dir else _DEFAULT_DATA_DIR
        self._users = _JsonCollection(self.data_dir / "users.json", _row_to_user)
        self._sessions = _JsonCollection(self.data_dir / "sessions.json", _row_to_session)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def find_user_by_email(self, email: str) -> User | None:
        """Case-insensitive exact match on email. Returns None if not found."""
        wanted = str(email).casefold()
        for user in self._users.load():
            if user.email.casefold() == wanted:
                return user
        return None

    def find_user_by_id(self, user_id: str) -> User | None:
        for user in self._users.load():
            if user.id == user_id:
                return user
        return None

    def create_user(self, user: User) -> bool:
        """Append a user unless one with the same email exists.

        Returns True if the user was added, False on an email collision. The
        uniqueness check and the write happen under one lock.
        """
        with self._users.lock:
            users = self._users.load()
            wanted = user.email.casefold()
            if any(u.email.casefold() == wanted for u in users):
                return False
            self._users.commit([*users, user])
        return True

    def seed_default_users(self, defaults: Iterable[tuple[str, str, Role, str]] = DEFAULT_USERS) -> int:
        """Create each default account whose email is missing. Returns how many were added.

        Idempotent: running it on every startup never produces duplicates.
        Passwords are only hashed for accounts that are actually created.
        """
        added = 0
        for email, name, role, password in defaults:
            if self.find_user_by_email(email) is not None:
                continue
            user = User(
                id=str(uuid.uuid4()),
                email=email,
                name=name,
                role=Role(role).value,
                password_hash=hash_password(password),
            )
            if self.create_user(user):
                logger.info("Seeded default user %s (%s)", email, user.role)
                added += 1
        return added

    # ------------------------------------------------------------------
    # Session queries
    # ------------------------------------------------------------------

    def create_session(self, session: Session) -> None:
        with self._sessions.lock:
            self._sessions.commit([*self._sessions.load(), session])

    def find_session_by_hash(self, refresh_token_hash: str) -> Session | None:
        """Return the first unrevoked session whose stored hash matches.

        Expired-but-unswept records are returned too; liveness is the caller's
        check. Ties resolve to insertion order.
        """
        for session in self._sessions.load():
            if session.refresh_token_hash == refresh_token_hash and not session.revoked_at:
                return session
        return None

    def remove_session(self, session_id: str) -> bool:
        """Delete a session by id. Returns True if a record was removed.

        Removing an absent id is a no-op, not an error.
        """
        with self._sessions.lock:
            sessions = self._sessions.load()
            remaining = [s for s in sessions if s.id != session_id]
            if len(remaining) == len(sessions):
                return False
            self._sessions.commit(remaining)
        return True

    def clear_expired_sessions(self, now: datetime | None = None) -> int:
        """Delete every session that is not live at now, in one write.

        Uses a single evaluation instant for the whole sweep. Returns the
        number of records removed; nothing is written when it is zero.
        """
        now = now or _now()
        with self._sessions.lock:
            sessions = self._sessions.load()
            live = [s for s in sessions if is_live(s, now)]
            removed = len(sessions) - len(live)
            if removed:
                self._sessions.commit(live)
        if removed:
            logger.info("Swept %d expired session(s)", removed)
        return removed

    def count_sessions(self) -> int:
        return len(self._sessions.load())

    def reload(self) -> None:
        """Drop both caches so the next access re-reads the snapshots."""
        self._users.invalidate()
        self._sessions.invalidate()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row: dict) -> User:
    try:
        return User(
            id=str(row["id"]),
            email=str(row["email"]),
            name=str(row.get("name") or ""),
            role=str(row["role"]),
            password_hash=str(row.get("password_hash") or ""),
        )
    except KeyError as exc:
        raise StoreError(f"User record missing field {exc}") from exc


def _row_to_session(row: dict) -> Session:
    try:
        return Session(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            refresh_token_hash=str(row["refresh_token_hash"]),
            created_at=str(row.get("created_at") or ""),
            expires_at=str(row.get("expires_at") or ""),
            revoked_at=row.get("revoked_at") or None,
        )
    except KeyError as exc:
        raise StoreError(f"Session record missing field {exc}") from exc
