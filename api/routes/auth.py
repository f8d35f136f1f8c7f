"""
api/routes/auth.py -- Signup, login and identity endpoints.

Routes:
  POST /signup             -- create an account (public)
  POST /login              -- password login; returns a bearer token (public)
  GET  /me                 -- identity behind the presented token
  GET  /users/{username}   -- account profile (admin only)

Security:
  POST /login and POST /signup are rate-limited per IP.
  login() in auth.accounts provides timing equalization and the uniform
  bad_credentials error -- use it, never inline lookup + verify here.
  Cache-Control: no-store on login responses so tokens are not cached.

Signup and login are sync handlers on purpose: FastAPI runs them in its
threadpool, so bcrypt never blocks the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MeResponse, SignupRequest, SignupResponse, UserProfileResponse
from auth import accounts
from auth.dependencies import get_current_identity, require_admin
from auth.models import Identity
from auth.policy import AdminSet
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import NotFoundError

_settings = get_settings()

# Auth policy:
# - POST /signup:            public
# - POST /login:             public
# - GET  /me:                requires bearer token (get_current_identity)
# - GET  /users/{username}:  requires admin (require_admin)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.signup_rate_limit)
@router.post("/signup", response_model=SignupResponse)
def signup(request: Request, body: SignupRequest) -> SignupResponse:
    """Register a new account.

    400 for an invalid username, empty or over-long password; 409 if the
    username is taken. An existing account is never overwritten.
    """
    user_store: UserStore = request.app.state.user_store
    created = accounts.register_user(
        user_store,
        username=body.username,
        password=body.password,
        age=body.age,
        gender=body.gender,
    )
    return SignupResponse(username=created.username)


@limiter.limit(_settings.login_rate_limit)
@router.post("/login", response_model=LoginResponse)
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with username and password and return a bearer token.

    Wrong password and unknown username produce the identical 401 body.
    """
    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.tokens
    admins: AdminSet = request.app.state.admins

    response.headers["Cache-Control"] = "no-store"
    token, identity = accounts.login(user_store, tokens, admins, body.username, body.password)
    return LoginResponse(
        token=token,
        expires_in=tokens.expire_seconds,
        username=identity.username,
        is_admin=identity.is_admin,
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
async def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return the identity carried by the presented token."""
    return MeResponse(username=identity.username, is_admin=identity.is_admin)


@router.get("/users/{username}", response_model=UserProfileResponse)
def get_user(
    request: Request,
    username: str,
    identity: Identity = Depends(require_admin),
) -> UserProfileResponse:
    """Look up an account profile. Admin only."""
    user_store: UserStore = request.app.state.user_store
    credential = user_store.get_by_username(accounts.normalize_username(username))
    if credential is None:
        raise NotFoundError("User not found.")
    return UserProfileResponse(
        username=credential.username,
        age=credential.age,
        gender=credential.gender,
        created_at=credential.created_at,
    )
