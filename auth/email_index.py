"""
auth/email_index.py -- Pseudonymous email index.

Users are looked up by compute_email_hash(email), never by plaintext email.
The digest is PBKDF2-HMAC-SHA256 over the normalized address, salted with a
fixed, application-wide, versioned salt (Settings.email_hash_salt). Being
deterministic is the point: two spellings of the same address that normalize
identically must land on the same 32 bytes, and the users.email_hash unique
index then enforces one account per address.

The salt and iteration count are separate from password hashing so the email
keyspace never reveals anything about password-hash parameters.

Threat model: this is pseudonymization, not secrecy. An attacker who holds the
database and the (non-secret) salt can still confirm a guessed address by
hashing it. The iteration count only makes bulk guessing slower.
"""

from __future__ import annotations

import hashlib

_KEY_BYTES = 32


def normalize_email(email: str) -> str:
    """Trim surrounding whitespace and lowercase."""
    return (email or "").strip().lower()


class EmailIndexer:
    def __init__(self, salt: str, version: int = 1, iterations: int = 200_000) -> None:
        self._salt = salt.encode("utf-8")
        self.version = version
        self._iterations = iterations

    def compute_email_hash(self, email: str) -> bytes:
        """Return the 32-byte lookup digest for email."""
        return hashlib.pbkdf2_hmac(
            "sha256",
            normalize_email(email).encode("utf-8"),
            self._salt,
            self._iterations,
            dklen=_KEY_BYTES,
        )
