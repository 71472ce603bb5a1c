"""
auth/refresh.py -- Refresh-token issuance and single-use rotation.

State machine for one token row:

    Active  --redeem-->  Revoked   (terminal; revoked=1 is never cleared)
    Active  --time--->   Expired   (terminal; derived from expires_at <= now)

A refresh token is 64 random bytes, base64-encoded: opaque, with no embedded
structure. Everything about it lives in the refresh_tokens table.

redeem() is deliberately not retry-safe. If a rotation commits but the
response is lost, a retry presents an already-revoked token and fails with
TokenExpiredOrRevokedError. That is the intended outcome: accepting the retry
would make a replayed token indistinguishable from a legitimate one.
"""

from __future__ import annotations

import base64
import logging
import re
import secrets
from datetime import datetime, timedelta

from auth.clock import Clock, utc_now
from auth.exceptions import InvalidTokenError, TokenExpiredOrRevokedError, UserNotFoundError
from auth.models import RefreshToken, User
from auth.store import AuthStore

logger = logging.getLogger("datavisualizer.auth")

_TOKEN_BYTES = 64

# Anything outside this shape cannot be a stored token and never reaches the database.
_TOKEN_RE = re.compile(r"[A-Za-z0-9+/=]{1,128}")


def generate_refresh_token() -> str:
    """Return 64 bytes from the OS CSPRNG, base64-encoded (512 bits of entropy)."""
    return base64.b64encode(secrets.token_bytes(_TOKEN_BYTES)).decode("ascii")


class RefreshTokenStore:
    """Issues refresh tokens and redeems them exactly once."""

    def __init__(self, store: AuthStore, ttl_days: int = 7, clock: Clock = utc_now) -> None:
        self._store = store
        self._ttl = timedelta(days=ttl_days)
        self._clock = clock

    def issue(self, user_id: str) -> RefreshToken:
        """Create and persist a new Active token for user_id."""
        now = self._clock()
        token = self._new_token(user_id, now)
        self._store.create_refresh_token(token)
        return token

    def redeem(self, token: str) -> tuple[User, RefreshToken]:
        """Spend token and return its owner plus the successor token.

        Raises:
            InvalidTokenError:          no such token, or not token-shaped.
            TokenExpiredOrRevokedError: already redeemed, expired, or lost a
                                        concurrent redemption race.
            UserNotFoundError:          the owning user no longer exists.
        """
        if not isinstance(token, str) or not _TOKEN_RE.fullmatch(token):
            raise InvalidTokenError()
        now = self._clock()
        current = self._store.get_refresh_token(token)
        if current is None:
            raise InvalidTokenError()
        if current.revoked or current.expires_at <= now:
            raise TokenExpiredOrRevokedError()

        user = self._store.get_user_by_id(current.user_id)
        if user is None:
            raise UserNotFoundError()

        successor = self._new_token(user.id, now)
        if not self._store.rotate_refresh_token(token, successor, now):
            logger.warning("Refresh token for user %s was redeemed concurrently", user.id)
            raise TokenExpiredOrRevokedError()
        return user, successor

    def _new_token(self, user_id: str, now: datetime) -> RefreshToken:
        return RefreshToken(
            token=generate_refresh_token(),
            user_id=user_id,
            created_at=now,
            expires_at=now + self._ttl,
            revoked=False,
        )
