"""
auth/passwords.py -- Password hashing and verification (PBKDF2-HMAC-SHA256).

Stored format: "<iterations>.<salt-base64>.<hash-base64>"

  The iteration count travels with the hash, so raising
  Settings.password_iterations later never invalidates existing hashes:
  verify_password() always recomputes with the stored count, and
  needs_rehash() tells the login flow when to upgrade a stored hash.

  Salt is 16 random bytes per password; the derived key is 32 bytes.

verify_password() fails closed. Any malformed stored string (wrong field
count, non-numeric iterations, invalid base64) returns False, and so does a
candidate password with no UTF-8 encoding. Parsing is done
by _parse_hash(), which returns None instead of raising, so no exception is
used for control flow on the verification path.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
import secrets
from typing import NamedTuple, Optional

_SALT_BYTES = 16
_KEY_BYTES = 32
_DIGEST = "sha256"

# Upper bound on a stored iteration count. A tampered row with an absurd count
# would otherwise pin a worker on a single verification.
_MAX_ITERATIONS = 10_000_000

_ITERATIONS_RE = re.compile(r"[0-9]{1,8}")
_BASE64_RE = re.compile(r"(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?")
# Lone UTF-16 surrogates survive JSON decoding ("\ud800") but have no UTF-8 form.
_SURROGATE_RE = re.compile(r"[\ud800-\udfff]")


class _ParsedHash(NamedTuple):
    iterations: int
    salt: bytes
    key: bytes


def is_utf8_encodable(value: str) -> bool:
    """Return True if value can be encoded as UTF-8 (no lone surrogates)."""
    return _SURROGATE_RE.search(value) is None


def _b64decode(value: str) -> Optional[bytes]:
    if not value or not _BASE64_RE.fullmatch(value):
        return None
    return base64.b64decode(value)


def _parse_hash(stored_hash: str) -> Optional[_ParsedHash]:
    """Split a stored hash into its parts. Returns None if it is malformed."""
    if not isinstance(stored_hash, str):
        return None
    parts = stored_hash.split(".")
    if len(parts) != 3:
        return None
    raw_iterations, raw_salt, raw_key = parts
    if not _ITERATIONS_RE.fullmatch(raw_iterations):
        return None
    iterations = int(raw_iterations)
    if iterations < 1 or iterations > _MAX_ITERATIONS:
        return None
    salt = _b64decode(raw_salt)
    key = _b64decode(raw_key)
    if salt is None or key is None:
        return None
    return _ParsedHash(iterations, salt, key)


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac(_DIGEST, password.encode("utf-8"), salt, iterations, dklen=_KEY_BYTES)


class CredentialHasher:
    """Derives and verifies salted, iterated password hashes.

    Usage:
        hasher = CredentialHasher(iterations=settings.password_iterations)
        stored = hasher.hash_password("correct horse")
        hasher.verify_password("correct horse", stored)  # True
    """

    def __init__(self, iterations: int = 200_000) -> None:
        if iterations < 1 or iterations > _MAX_ITERATIONS:
            raise ValueError(f"iterations must be between 1 and {_MAX_ITERATIONS}")
        self.iterations = iterations

    def hash_password(self, password: str) -> str:
        """Return a new "<iterations>.<salt>.<hash>" string for password."""
        salt = secrets.token_bytes(_SALT_BYTES)
        key = _derive(password, salt, self.iterations)
        return ".".join(
            (
                str(self.iterations),
                base64.b64encode(salt).decode("ascii"),
                base64.b64encode(key).decode("ascii"),
            )
        )

    def verify_password(self, password: str, stored_hash: str) -> bool:
        """Return True only if password matches stored_hash.

        Comparison uses hmac.compare_digest, whose running time does not depend
        on where the first mismatching byte is.
        """
        parsed = _parse_hash(stored_hash)
        if parsed is None or not isinstance(password, str) or not is_utf8_encodable(password):
            return False
        actual = _derive(password, parsed.salt, parsed.iterations)
        return hmac.compare_digest(actual, parsed.key)

    def needs_rehash(self, stored_hash: str) -> bool:
        """Return True if stored_hash was derived with fewer iterations than configured."""
        parsed = _parse_hash(stored_hash)
        return parsed is not None and parsed.iterations < self.iterations
