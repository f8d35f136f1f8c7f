"""
tests/conftest.py -- Shared test fixtures for GeoConnect.

This module provides:
  - FakePostStore: in-memory stand-in with the PostStore interface, so API
    tests run without an Elasticsearch cluster
  - _patch_lifespan(): wires test collaborators into app.state, bypassing
    the real startup
  - api_client: module-scoped TestClient plus the collaborators behind it
  - user_store: fresh in-memory UserStore for unit tests

Named shared-memory SQLite URIs (not plain :memory:) are used for the API
client because TestClient runs sync route handlers in a thread pool; plain
:memory: DBs are per-connection and would show each worker thread a blank
schema.

Environment variables must be set before any project import: modules read
get_settings() at import time.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# CRITICAL: set before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ADMIN_USERS", "root_admin, Moderator")
os.environ.setdefault("MEDIA_DIR", tempfile.mkdtemp(prefix="geoconnect_media_"))

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.policy import AdminSet
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from posts.media import ImageStore
from posts.models import Post

# ---------------------------------------------------------------------------
# Fake post store
# ---------------------------------------------------------------------------


@dataclass
class FakePostStore:
    """Dict-backed PostStore replacement.

    Geo queries are recorded in `queries` so tests can assert on the
    arguments the routes passed; search_bbox filters by plain coordinate
    comparison and search_nearby returns every post.
    """

    posts: dict[str, Post] = field(default_factory=dict)
    queries: list[tuple] = field(default_factory=list)

    def ensure_index(self) -> bool:
        return False

    def ping(self) -> bool:
        return True

    def save(self, post: Post) -> Post:
        self.posts[post.id] = post
        return post

    def get(self, post_id: str) -> Post | None:
        return self.posts.get(post_id)

    def delete(self, post_id: str) -> bool:
        return self.posts.pop(post_id, None) is not None

    def search_nearby(self, lat: float, lon: float, distance_km: float, size: int = 100) -> list[Post]:
        self.queries.append(("nearby", lat, lon, distance_km, size))
        return list(self.posts.values())[:size]

    def search_bbox(self, top: float, left: float, bottom: float, right: float, size: int = 100) -> list[Post]:
        self.queries.append(("bbox", top, left, bottom, right, size))
        return [
            p
            for p in self.posts.values()
            if bottom <= p.location.lat <= top and left <= p.location.lon <= right
        ][:size]

    def search_by_user(self, username: str, size: int = 100) -> list[Post]:
        self.queries.append(("user", username, size))
        return [p for p in self.posts.values() if p.user == username][:size]

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Lifespan patch
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    user_store: UserStore
    post_store: FakePostStore
    tokens: TokenService

    def auth_headers(self, username: str, is_admin: bool = False) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens.issue(username, is_admin)}"}


def _patch_lifespan(user_store: UserStore, post_store: FakePostStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.user_store = user_store
        app.state.tokens = tokens
        app.state.admins = AdminSet(settings.admin_users_list)
        app.state.post_store = post_store
        app.state.media = ImageStore(settings.media_dir, settings.media_url_prefix, settings.max_upload_bytes)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness for API integration tests.

    Each test module gets its own named in-memory DB and an empty fake post
    store, so modules never see each other's users or posts.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store = UserStore(f"sqlite:///file:test_users_{suffix}?mode=memory&cache=shared&uri=true")
    post_store = FakePostStore()
    tokens = TokenService(get_settings().secret_key, get_settings().token_expire_seconds)

    app.router.lifespan_context = _patch_lifespan(user_store, post_store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, user_store=user_store, post_store=post_store, tokens=tokens)

    user_store.close()


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()
