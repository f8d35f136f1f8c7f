"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these only own the shape.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass
class Credential:
    """A registered account as persisted by UserStore.

    username is already normalized (lowercase, [a-z0-9_]) by the time a
    Credential is built. hashed_password is a bcrypt digest, never plaintext.
    There is no update path: a Credential is written once at signup.
    """

    username: str
    hashed_password: str
    age: int = 0
    gender: str = ""
    created_at: str | None = None  # ISO 8601, set by the store on insert


@dataclass(frozen=True)
class Identity:
    """The verified caller behind a request.

    Built only from a verified token. Downstream code must treat this as the
    sole source of "who is calling" and ignore any user field in request bodies.
    """

    username: str
    is_admin: bool = False


class TokenStatus(str, Enum):
    authenticated = "authenticated"
    expired = "expired"
    invalid = "invalid"


@dataclass(frozen=True)
class TokenVerification:
    """Outcome of TokenService.verify(): identity is set only when authenticated."""

    status: TokenStatus
    identity: Identity | None = None

    @property
    def ok(self) -> bool:
        return self.status is TokenStatus.authenticated
