"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Access tokens arrive as "Authorization: Bearer <jwt>". Verification is
stateless: signature and expiry only, no store lookup.

try_get_current_user_id() is the soft variant (returns None on failure).
get_current_user_id() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: auth/dependencies.py may import from fastapi because this module
is part of the FastAPI dependency injection system. It does not import api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.tokens import TokenIssuer


def try_get_current_user_id(request: Request) -> str | None:
    """Return the verified sub claim of the Bearer token, or None.

    Never raises -- callers that need a hard 401 should use get_current_user_id().
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    issuer: TokenIssuer = request.app.state.token_issuer
    payload = issuer.decode_access_token(auth_header[7:])
    if payload is None:
        return None
    return payload["sub"]


def get_current_user_id(request: Request) -> str:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.post("/protected")
        def route(caller_id: str = Depends(get_current_user_id)): ...
    """
    user_id = try_get_current_user_id(request)
    if user_id is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user_id
