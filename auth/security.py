"""
auth/security.py -- Password hashing and opaque refresh-secret utilities.

Security design decisions:
  Passwords: argon2-cffi PasswordHasher (Argon2id). Argon2 is memory-hard, so
       offline brute force of a stolen users.json needs RAM as well as CPU per
       guess. Each hash embeds its own random 16-byte salt and the parameters
       it was made with; the derived key length is fixed at _KEY_LENGTH bytes
       for the whole system. The _DUMMY_HASH constant enables timing
       equalization in the session manager so response time does not reveal
       whether an email exists.

  Refresh secrets: secrets.token_urlsafe() gives maximal-entropy random values.
       We store SHA-256(secret) so lookup is a plain equality match. A slow,
       salted hash would add CPU cost to every refresh call and buy nothing
       against 384-bit random input.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import secrets

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_KEY_LENGTH = 64
_SALT_LENGTH = 16

_hasher = PasswordHasher(hash_len=_KEY_LENGTH, salt_len=_SALT_LENGTH)


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return an encoded Argon2id hash of the given plaintext password.

    The same plaintext hashed twice yields two different strings (fresh salt
    each time); both verify against it.
    """
    return _hasher.hash(plain)


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password matches the encoded hash.

    Never raises: a missing, truncated, or otherwise malformed hash is simply
    a non-match. Argon2 compares the derived keys in constant time.
    """
    if not hashed or not isinstance(hashed, str):
        return False
    try:
        return _hasher.verify(hashed, plain)
    except (VerificationError, InvalidHashError, UnicodeError):
        return False


# Computed once at module load so the first failed login is not measurably
# slower than later ones. Verify against it when the email is unknown.
_DUMMY_HASH: str = hash_password("authgate_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Spend one full password verification without any account behind it."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Opaque tokens
# ---------------------------------------------------------------------------


def generate_random_token(byte_length: int = 64) -> str:
    """Return byte_length random bytes as URL-safe base64 without padding."""
    return secrets.token_urlsafe(byte_length)


def hash_token(secret: str) -> str:
    """Return SHA-256(secret) as a hex string -- the session lookup key."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()
