"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Per request the caller is either unauthenticated or authenticated; nothing is
persisted between requests. The only accepted credential is an
Authorization: Bearer <token> header carrying a token minted by POST /login.

try_get_identity() is the soft variant (returns the TokenVerification).
get_current_identity() wraps it and raises AuthenticationError (401) unless
the token verified, so a rejected request never reaches the route handler.
require_admin() wraps get_current_identity() and raises AuthorizationError (403).

The Identity returned here is the only trusted source of caller identity.
Route handlers take it as a typed parameter and must ignore any "user" field
a client puts in a request body.

Layer rule: auth/dependencies.py may import from fastapi because it is part of
the FastAPI dependency injection system. No imports from api/ or posts/.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Identity, TokenStatus, TokenVerification
from auth.tokens import TokenService
from core.errors import AuthenticationError, AuthorizationError

_BEARER_PREFIX = "bearer "


def bearer_token(request: Request) -> str | None:
    """Return the raw token from the Authorization header, or None."""
    header = request.headers.get("Authorization", "")
    if header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None


def try_get_identity(request: Request) -> TokenVerification:
    """Verify the request's bearer token. Never raises.

    The scheme is matched case-insensitively. A missing header or another
    scheme counts as an invalid token.
    """
    token = bearer_token(request)
    if token is None:
        return TokenVerification(TokenStatus.invalid)
    tokens: TokenService = request.app.state.tokens
    return tokens.verify(token)


def get_current_identity(request: Request) -> Identity:
    """Require a valid bearer token. Raises 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    result = try_get_identity(request)
    if result.status is TokenStatus.expired:
        raise AuthenticationError("Token has expired. Log in again.", code="token_expired")
    if not result.ok or result.identity is None:
        raise AuthenticationError("Authentication required.")
    return result.identity


def require_admin(request: Request) -> Identity:
    """Require an admin identity. Raises 401 if unauthenticated, 403 if not admin."""
    identity = get_current_identity(request)
    if not identity.is_admin:
        raise AuthorizationError("Admin access required.")
    return identity
