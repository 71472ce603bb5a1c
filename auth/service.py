"""
auth/service.py -- Register / Login / Refresh / ResetPassword use cases.

AuthService composes the leaf components:

    EmailIndexer       email -> 32-byte lookup digest
    CredentialHasher   password <-> "<iterations>.<salt>.<hash>"
    TokenIssuer        user -> signed access JWT
    RefreshTokenStore  user id -> opaque single-use refresh token

Security:
  [C1] login() runs a password verification even when the email is unknown,
       against a dummy hash with the configured iteration count. Response time
       therefore does not reveal whether an account exists, and both failure
       paths raise the same AuthenticationError.

  reset_password() policy: only an authenticated caller may reset, and only
       its own password. The caller's verified user id (the access token's
       sub claim) is passed in as caller_id. A target that does not exist and
       a target that belongs to someone else both raise the same
       NotFoundError, so the endpoint cannot be used to probe other accounts.

  Nothing here logs an email address, password, token or digest. Events are
  logged by user id only.

Every use case either commits all of its writes or none of them. No method
retries on failure; refresh() in particular must not be retried blindly (see
auth/refresh.py).
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError

from auth.clock import Clock, utc_now
from auth.email_index import EmailIndexer
from auth.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from auth.models import TokenPair, User
from auth.passwords import CredentialHasher, is_utf8_encodable
from auth.refresh import RefreshTokenStore
from auth.store import AuthStore
from auth.tokens import TokenIssuer

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("datavisualizer.auth")

MIN_PASSWORD_LENGTH = 8


class AuthService:
    """Auth use cases over one AuthStore.

    Usage:
        service = AuthService.from_settings(get_settings(), AuthStore(url))
        service.register("a@x.com", "password1")
        pair = service.login("a@x.com", "password1")
        pair = service.refresh(pair.refresh_token)
    """

    def __init__(
        self,
        store: AuthStore,
        hasher: CredentialHasher,
        indexer: EmailIndexer,
        issuer: TokenIssuer,
        refresh_tokens: RefreshTokenStore,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._indexer = indexer
        self.token_issuer = issuer
        self._refresh_tokens = refresh_tokens
        self._clock = clock
        # Timing equalization dummy hash [C1]. Computed once so the first
        # failed login is not measurably faster than later ones.
        self._dummy_hash = hasher.hash_password(uuid.uuid4().hex)

    @classmethod
    def from_settings(cls, settings: Settings, store: AuthStore, clock: Clock = utc_now) -> AuthService:
        """Build the service and its components from one Settings value."""
        return cls(
            store=store,
            hasher=CredentialHasher(iterations=settings.password_iterations),
            indexer=EmailIndexer(
                salt=settings.email_hash_salt,
                version=settings.email_hash_version,
                iterations=settings.email_hash_iterations,
            ),
            issuer=TokenIssuer(settings, clock=clock),
            refresh_tokens=RefreshTokenStore(store, ttl_days=settings.refresh_token_days, clock=clock),
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------

    def register(self, email: str, password: str) -> User:
        """Create an account. Raises ValidationError or ConflictError."""
        _validate_email(email)
        _validate_password(password)

        email_hash = self._indexer.compute_email_hash(email)
        if self._store.get_user_by_email_hash(email_hash) is not None:
            raise ConflictError()

        now = self._clock()
        user = User(
            id=str(uuid.uuid4()),
            email_hash=email_hash,
            email_hash_version=self._indexer.version,
            password_hash=self._hasher.hash_password(password),
            created_at=now,
            updated_at=now,
        )
        try:
            self._store.create_user(user)
        except IntegrityError as exc:
            # A concurrent registration of the same address won the unique index.
            raise ConflictError() from exc
        logger.info("Registered user %s", user.id)
        return user

    def login(self, email: str, password: str) -> TokenPair:
        """Verify credentials and issue an access/refresh token pair.

        Raises AuthenticationError for an unknown email and for a wrong
        password alike.
        """
        # Input with no UTF-8 form cannot name an account; treat it as unknown.
        usable = bool(email and password) and is_utf8_encodable(email) and is_utf8_encodable(password)
        user = None
        if usable:
            user = self._store.get_user_by_email_hash(self._indexer.compute_email_hash(email))
        if user is None:
            # Equalize timing -- do NOT return before running the KDF [C1]
            self._hasher.verify_password(password if usable else "", self._dummy_hash)
            raise AuthenticationError("unknown_account")
        if not self._hasher.verify_password(password, user.password_hash):
            logger.info("Failed login for user %s", user.id)
            raise AuthenticationError("wrong_password")

        if self._hasher.needs_rehash(user.password_hash):
            self._store.update_password_hash(user.id, self._hasher.hash_password(password), self._clock())
            logger.info("Upgraded password hash for user %s", user.id)

        pair = self._issue_pair(user)
        logger.info("Login for user %s", user.id)
        return pair

    def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate refresh_token and issue a new pair.

        Failure kinds from RefreshTokenStore.redeem() propagate unchanged.
        """
        try:
            user, successor = self._refresh_tokens.redeem(refresh_token or "")
        except AuthenticationError as exc:
            logger.info("Refresh rejected: %s", exc.reason)
            raise
        access = self.token_issuer.generate_access_token(user)
        logger.info("Rotated refresh token for user %s", user.id)
        return TokenPair(
            access_token=access.token,
            refresh_token=successor.token,
            expires_at=access.expires_at,
        )

    def reset_password(self, email: str, new_password: str, *, caller_id: str) -> None:
        """Overwrite the caller's own password.

        Raises ValidationError for a malformed email or short password and
        NotFoundError when email does not resolve to the caller's account.
        """
        _validate_email(email)
        _validate_password(new_password)

        user = self._store.get_user_by_email_hash(self._indexer.compute_email_hash(email))
        if user is None or user.id != caller_id:
            if user is not None:
                logger.warning("User %s attempted to reset another account's password", caller_id)
            raise NotFoundError()

        if not self._store.update_password_hash(user.id, self._hasher.hash_password(new_password), self._clock()):
            raise NotFoundError()
        logger.info("Password reset for user %s", user.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue_pair(self, user: User) -> TokenPair:
        access = self.token_issuer.generate_access_token(user)
        refresh = self._refresh_tokens.issue(user.id)
        return TokenPair(
            access_token=access.token,
            refresh_token=refresh.token,
            expires_at=access.expires_at,
        )


def _validate_email(email: str) -> None:
    """Syntax check only; deliverability (DNS) is not consulted."""
    if not email or not email.strip():
        raise ValidationError("Email and password required.")
    if not is_utf8_encodable(email):
        raise ValidationError("Invalid email format.")
    try:
        validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("Invalid email format.") from exc


def _validate_password(password: str) -> None:
    # Length is the only strength rule: no upper bound, no composition rules.
    if not password:
        raise ValidationError("Email and password required.")
    if not is_utf8_encodable(password):
        raise ValidationError("Password contains invalid characters.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
