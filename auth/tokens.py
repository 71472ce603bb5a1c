"""
auth/tokens.py -- JWT access-token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id), role, iat and exp, plus iss/aud when configured.
       The issuer is stateless: nothing is persisted, and validity is decided
       later purely by signature and expiry.

  Verification returns None on any failure -- the dependency layer turns that
       into a 401.

  SECRET_KEY: validated by core.config.Settings at startup. A missing or short
       key never reaches this module [M6][M7].

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.clock import Clock, utc_now
from auth.models import AccessToken

if TYPE_CHECKING:
    from auth.models import User
    from core.config import Settings

logger = logging.getLogger("datavisualizer.auth")

_ALGORITHM = "HS256"


class TokenIssuer:
    """Mints and verifies short-lived signed access tokens.

    Usage:
        issuer = TokenIssuer(get_settings())
        access = issuer.generate_access_token(user)
        payload = issuer.decode_access_token(access.token)
    """

    def __init__(self, settings: Settings, clock: Clock = utc_now) -> None:
        self._secret_key = settings.secret_key
        self._ttl = timedelta(minutes=settings.access_token_minutes)
        self._role = settings.access_token_role
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self._clock = clock

    def generate_access_token(self, user: User) -> AccessToken:
        """Encode a signed JWT for user, expiring access_token_minutes from now."""
        now = self._clock()
        expires_at = now + self._ttl
        payload = {
            "sub": user.id,
            "role": self._role,
            "iat": now,
            "exp": expires_at,
        }
        if self._issuer:
            payload["iss"] = self._issuer
        if self._audience:
            payload["aud"] = self._audience
        token = jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        return AccessToken(token=token, expires_at=expires_at)

    def decode_access_token(self, token: str) -> dict | None:
        """Decode and verify a JWT. Returns the payload dict or None on any failure.

        Expiry is checked by python-jose against wall-clock time, not the
        injected clock: verification happens at request time in production.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                audience=self._audience or None,
                issuer=self._issuer or None,
            )
        except JWTError as exc:
            logger.debug("Access token rejected: %s", exc)
            return None
        if "sub" not in payload or "role" not in payload:
            return None
        return payload
