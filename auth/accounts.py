"""
auth/accounts.py -- Signup and login orchestration.

Signup: normalize + validate username -> non-empty password -> uniqueness
        pre-check -> hash -> persist.
Login:  lookup -> verify password (with timing equalization) -> issue token
        carrying is_admin from the AdminSet.

Every login failure raises the same AuthenticationError with the same message
and code, whether the username is unknown or the password is wrong, so the
response cannot be used to enumerate usernames.

These functions are synchronous and bcrypt is deliberately slow. Call them
from sync FastAPI handlers (which run in the threadpool), never directly from
a coroutine.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import logging
import re

from auth.models import Credential, Identity
from auth.policy import AdminSet
from auth.store import UserStore
from auth.tokens import TokenService, equalize_timing, hash_password, verify_password
from core.errors import AuthenticationError, ConflictError, ValidationError

logger = logging.getLogger("geoconnect.auth")

USERNAME_PATTERN = re.compile(r"^[a-z0-9_]+$")
USERNAME_MAX_LENGTH = 64

BAD_CREDENTIALS_MESSAGE = "Invalid username or password."


def normalize_username(raw: str) -> str:
    """Strip surrounding whitespace and lowercase."""
    return raw.strip().lower()


def validate_username(raw: str) -> str:
    """Return the normalized username or raise ValidationError.

    "Alice" normalizes to "alice" and is accepted; "Invalid User!" still
    contains a space and a "!" after lowercasing and is rejected.
    """
    username = normalize_username(raw)
    if not username or len(username) > USERNAME_MAX_LENGTH or not USERNAME_PATTERN.match(username):
        raise ValidationError(
            f"Username must be 1-{USERNAME_MAX_LENGTH} characters of lowercase letters, digits or underscores.",
            code="invalid_username",
        )
    return username


def register_user(store: UserStore, username: str, password: str, age: int = 0, gender: str = "") -> Credential:
    """Create a new account. Raises ValidationError or ConflictError."""
    username = validate_username(username)
    if not password:
        raise ValidationError("Password is required.", code="password_required")
    if store.get_by_username(username) is not None:
        raise ConflictError("Username already exists.")

    credential = Credential(
        username=username,
        hashed_password=hash_password(password),
        age=age,
        gender=gender,
    )
    created = store.create_user(credential)
    logger.info("Signup: created user %s", username)
    return created


def authenticate_user(store: UserStore, username: str, password: str) -> Credential | None:
    """Return the matching Credential, or None on any mismatch.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against the dummy hash.
    - Wrong password: bcrypt runs against the real hash.
    """
    credential = store.get_by_username(normalize_username(username))
    if credential is None:
        equalize_timing(password)
        return None
    if not verify_password(password, credential.hashed_password):
        return None
    return credential


def login(
    store: UserStore, tokens: TokenService, admins: AdminSet, username: str, password: str
) -> tuple[str, Identity]:
    """Authenticate and return a signed bearer token with the identity it carries.

    Raises AuthenticationError("bad_credentials") for every credential failure.
    """
    credential = authenticate_user(store, username, password)
    if credential is None:
        logger.info("Login failed for %r", normalize_username(username)[:USERNAME_MAX_LENGTH])
        raise AuthenticationError(BAD_CREDENTIALS_MESSAGE, code="bad_credentials")
    is_admin = credential.username in admins
    logger.info("Login: %s (admin=%s)", credential.username, is_admin)
    identity = Identity(username=credential.username, is_admin=is_admin)
    return tokens.issue(identity.username, identity.is_admin), identity
