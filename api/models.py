"""
API request and response models for the DataVisualizer auth endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Email syntax and password length are validated by AuthService, not here, so
the HTTP layer and any other caller get identical rules and error messages.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    email: str = Field(max_length=320)
    password: str
    display_name: Optional[str] = Field(default=None, max_length=100)  # accepted, not stored


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(max_length=320)
    password: str


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh."""

    # No length bounds: malformed tokens get the same 401 as unknown ones.
    refresh_token: str


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/reset-password."""

    email: str = Field(max_length=320)
    new_password: str


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AuthResponse(BaseModel):
    """Token pair returned by login and refresh.

    expires_at is the access token's expiry. The refresh token's expiry is
    deliberately not exposed; clients only need to know when to refresh.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    expires_at: datetime
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
