"""
auth/errors.py -- Error taxonomy for the auth core.

Every failure the core reports is one of these classes. Each carries the HTTP
status and the machine-readable code the API layer renders, so route handlers
never translate errors by hand -- api/main.py registers one exception handler
for AuthError and the subclasses pick their own status.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for errors raised by the auth core."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthError):
    """Malformed or missing input."""

    status_code = 400
    code = "validation_error"


class AuthenticationError(AuthError):
    """Bad credentials, or an invalid, expired, or replayed token.

    The message is fixed per operation and never says which check failed.
    """

    status_code = 401
    code = "unauthorized"


class NotFoundError(AuthError):
    status_code = 404
    code = "not_found"


class InternalError(AuthError):
    """Server-side failure. The message is logged, never sent to the caller."""

    status_code = 500
    code = "internal_error"


class StoreError(InternalError):
    """Snapshot I/O failed or a persisted record has an unusable shape."""
