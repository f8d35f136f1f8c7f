"""
API request and response models for GeoConnect REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
posts/models.py, which own the internal domain representation. Route handlers
map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from posts.models import Post

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


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
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /signup.

    The username charset is checked by auth.accounts.validate_username() after
    normalization, not here, so "Alice" is accepted as "alice".
    """

    username: str = Field(max_length=255)
    password: str = Field(max_length=255)
    age: int = Field(default=0, ge=0, le=150)
    gender: str = Field(default="", max_length=32)


class SignupResponse(BaseModel):
    status: str = "ok"
    username: str


class LoginRequest(BaseModel):
    """Request body for POST /login. Empty fields are a malformed body (400)."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    username: str
    is_admin: bool


class MeResponse(BaseModel):
    username: str
    is_admin: bool


class UserProfileResponse(BaseModel):
    """Admin view of an account. The password hash is never returned."""

    username: str
    age: int
    gender: str
    created_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class LocationModel(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class PostCreate(BaseModel):
    """Request body for POST /post (JSON form).

    Unknown fields, including any client-supplied "user", are dropped: the
    author always comes from the verified token.
    """

    model_config = ConfigDict(extra="ignore")

    message: str = Field(min_length=1, max_length=5000)
    location: LocationModel


class PostResponse(BaseModel):
    id: str
    user: str
    message: str
    location: LocationModel
    url: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        return cls(
            id=post.id,
            user=post.user,
            message=post.message,
            location=LocationModel(lat=post.location.lat, lon=post.location.lon),
            url=post.url,
            created_at=post.created_at,
        )
