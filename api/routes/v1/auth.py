"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register        -- create an account
  POST /api/v1/auth/login           -- email/password -> access + refresh token
  POST /api/v1/auth/refresh         -- rotate a refresh token
  POST /api/v1/auth/reset-password  -- change own password (requires auth)

Security:
  [C1] AuthService.login() provides timing equalization -- never inline the
       lookup and verification here.
  [M5] Cache-Control: no-store on every response that carries tokens.
  Auth failures of every kind surface as the same 401 body; the mapping from
  AuthError subclasses to status codes lives in api/main.py.

Handlers are plain `def` so FastAPI runs them in its thread pool: the KDF and
the database calls are blocking.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from auth.dependencies import get_current_user_id
from auth.models import TokenPair
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/register:        public
# - POST /api/v1/auth/login:           public
# - POST /api/v1/auth/refresh:         public -- the refresh token is the credential
# - POST /api/v1/auth/reset-password:  requires auth; caller may only reset its own account
router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _to_response(pair: TokenPair) -> AuthResponse:
    return AuthResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_at=pair.expires_at,
    )


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> MessageResponse:
    """Create an account. 409 if the normalized email is already registered."""
    _service(request).register(body.email, body.password)
    return MessageResponse(message="User created successfully.")


@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password.

    Returns the same generic 401 for an unknown email and a wrong password.
    """
    pair = _service(request).login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return _to_response(pair)


@router.post("/auth/refresh", response_model=AuthResponse)
def refresh(request: Request, response: Response, body: RefreshRequest) -> AuthResponse:
    """Redeem a refresh token for a new token pair.

    The presented token is spent even if the response never reaches the
    client. Clients must not retry this call automatically.
    """
    pair = _service(request).refresh(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return _to_response(pair)


@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    caller_id: str = Depends(get_current_user_id),
) -> MessageResponse:
    """Change the authenticated caller's password.

    404 if the email is unknown or is not the caller's own account.
    """
    _service(request).reset_password(body.email, body.new_password, caller_id=caller_id)
    return MessageResponse(message="Password has been reset.")
