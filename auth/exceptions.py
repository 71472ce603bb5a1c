"""
auth/exceptions.py -- Typed failures raised by the auth service.

Every exception carries a public ``message`` and a machine-readable
``error_code``. The HTTP layer maps the class to a status code and returns
only those two fields, so nothing else on the exception ever reaches a client.

Account enumeration guard: every AuthenticationError subclass uses the same
message and code. The specific reason (unknown token, revoked, orphaned user)
is kept in ``reason`` for server-side logging only.
"""

from __future__ import annotations

from typing import Optional

_BAD_CREDENTIALS = "Invalid credentials."


class AuthError(Exception):
    """Base exception for all auth failures."""

    error_code = "auth_error"

    def __init__(self, message: str, error_code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code


class ValidationError(AuthError):
    """Malformed email or a password that violates the length policy."""

    error_code = "validation_error"


class ConflictError(AuthError):
    """An account with the same normalized email already exists."""

    error_code = "conflict"

    def __init__(self, message: str = "User already exists.") -> None:
        super().__init__(message)


class NotFoundError(AuthError):
    """Password-reset target could not be resolved for this caller."""

    error_code = "not_found"

    def __init__(self, message: str = "User not found.") -> None:
        super().__init__(message)


class AuthenticationError(AuthError):
    """Bad credentials or an unusable refresh token.

    The public message is fixed. Pass ``reason`` for logs.
    """

    error_code = "bad_credentials"
    reason = "bad_credentials"

    def __init__(self, reason: Optional[str] = None) -> None:
        super().__init__(_BAD_CREDENTIALS)
        if reason is not None:
            self.reason = reason


class InvalidTokenError(AuthenticationError):
    """The refresh token does not exist."""

    reason = "invalid_token"


class TokenExpiredOrRevokedError(AuthenticationError):
    """The refresh token was already redeemed, or its expiry has passed."""

    reason = "token_expired_or_revoked"


class UserNotFoundError(AuthenticationError):
    """The refresh token's owner no longer exists."""

    reason = "user_not_found"
