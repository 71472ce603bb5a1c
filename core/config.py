"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the DataVisualizer auth service happen here.
No module should call os.getenv() or os.environ.get() directly -- import
get_settings() instead, or accept a Settings instance as a constructor argument.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Immutable value: Settings is frozen. Every auth component receives the same
      instance explicitly; nothing mutates it after startup.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies
       on key entropy -- a short key weakens every access token.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure, never a per-request error.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("datavisualizer.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields except secret_key have defaults so Settings() can be instantiated
    in test environments without a real .env file. Tests normally pass
    secret_key and low iteration counts as keyword arguments.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # debug must stay declared before secret_key: the secret_key validator
    # reads it from info.data.
    debug: bool = False
    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev key or raises, so callers never see "".
    secret_key: str = Field(default="", validate_default=True)
    database_url: str = "sqlite:///datavisualizer_auth.db"

    # ------------------------------------------------------------------
    # Access tokens
    # ------------------------------------------------------------------

    access_token_minutes: int = Field(default=15, ge=1)
    access_token_role: str = "admin"
    jwt_issuer: str = ""  # empty = no iss claim
    jwt_audience: str = ""  # empty = no aud claim

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    refresh_token_days: int = Field(default=7, ge=1)
    # Rows expired for longer than this are removed by the purge loop.
    refresh_token_retention_days: int = Field(default=1, ge=0)
    refresh_token_purge_interval_hours: int = Field(default=6, ge=1)

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    password_iterations: int = Field(default=200_000, ge=1_000)
    # The email index has its own salt and iteration count. Changing either
    # changes every digest, so bump email_hash_version together with them.
    email_hash_salt: str = "users:v1"
    email_hash_version: int = Field(default=1, ge=1)
    email_hash_iterations: int = Field(default=200_000, ge=1_000)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, value: str, info: ValidationInfo) -> str:
        """Enforce the SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Access tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not value:
            if info.data.get("debug"):
                value = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(value) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return value


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    This is the official FastAPI pattern for config (see FastAPI docs /advanced/settings/).

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
