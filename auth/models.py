"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store maps rows to
these; the service and the token components do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """An account, identified only by a pseudonymous email digest.

    email_hash is a 32-byte keyed digest of the normalized email (see
    auth/email_index.py). The plaintext email is never stored.

    email_hash_version records which salt/iteration pair produced email_hash,
    so a future re-hash migration can find rows still on the old scheme.

    password_hash is the self-describing "<iterations>.<salt>.<hash>" string
    produced by CredentialHasher.
    """

    id: str
    email_hash: bytes
    email_hash_version: int
    password_hash: str
    created_at: datetime
    updated_at: datetime


@dataclass
class RefreshToken:
    """A long-lived opaque credential that can be redeemed exactly once.

    expires_at is fixed at issuance and never extended. revoked only ever goes
    from False to True -- redemption flips it and inserts a successor row in
    the same transaction.
    """

    token: str
    user_id: str
    created_at: datetime
    expires_at: datetime
    revoked: bool = False


@dataclass(frozen=True)
class AccessToken:
    """A signed JWT plus its expiry, as returned by TokenIssuer."""

    token: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    """Result of a successful login or refresh."""

    access_token: str
    refresh_token: str
    expires_at: datetime  # access token expiry
