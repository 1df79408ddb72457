"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the session
manager do the work; these classes only own the shape of a record.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    customer = "customer"
    merchant = "merchant"


@dataclass
class User:
    """An account that can log in with email and password.

    email is the case-insensitive unique key. password_hash is the encoded
    Argon2 string produced by auth.security.hash_password() -- the plaintext
    is never stored. Records are never deleted by the auth core.
    """

    id: str
    email: str
    name: str
    role: str  # Role value: "customer" or "merchant"
    password_hash: str


@dataclass
class Session:
    """One outstanding refresh-token grant.

    refresh_token_hash is SHA-256 of the refresh secret handed to the client.
    Timestamps are ISO 8601 UTC strings. revoked_at stays None: logout and
    rotation delete the record instead of flagging it, but a record carrying
    a revocation stamp is still treated as dead if one is ever persisted.
    """

    id: str
    user_id: str
    refresh_token_hash: str
    created_at: str
    expires_at: str
    revoked_at: str | None = None
