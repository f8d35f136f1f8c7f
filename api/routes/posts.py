"""
api/routes/posts.py -- Post creation, lookup, deletion and geo search.

Routes (all require a bearer token):
  POST   /post                      -- create a post (JSON or multipart with image)
  GET    /post/{post_id}            -- fetch one post
  DELETE /post/{post_id}            -- delete a post (owner or admin)
  GET    /search                    -- radius search: lat, lon, range (km)
  GET    /search/bbox               -- bounding-box search: top, left, bottom, right
  GET    /users/{username}/posts    -- posts by one author

Identity:
  Post.user is always identity.username from the verified token. A "user"
  field in a JSON body or multipart form is ignored.

Delete is read -> decide -> write: the post is fetched first so the ownership
policy sees the owner actually stored, then authorize_delete() runs, then the
delete is issued. The fetch and delete are separate Elasticsearch calls; a
concurrent delete between them shows up as 404 on the second caller.

Blocking collaborator calls (Elasticsearch, disk) inside async handlers go
through asyncio.to_thread(); sync handlers already run in the threadpool.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from api.models import PostCreate, PostResponse
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.policy import authorize_delete
from core.config import get_settings
from core.errors import GeoConnectError, NotFoundError, ValidationError
from posts.filters import contains_filtered_words
from posts.media import ImageStore
from posts.models import Location, Post
from posts.store import PostStore

logger = logging.getLogger("geoconnect.api")

_settings = get_settings()

router = APIRouter()


# ---------------------------------------------------------------------------
# Body parsing
# ---------------------------------------------------------------------------


def _parse_post_body(raw: dict[str, Any]) -> PostCreate:
    try:
        return PostCreate.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid post body.", code="invalid_post") from exc


async def _read_form(request: Request) -> tuple[PostCreate, UploadFile | None]:
    """Parse message/lat/lon and the optional image from a form body."""
    form = await request.form()
    raw = {
        "message": form.get("message") or "",
        "location": {"lat": form.get("lat"), "lon": form.get("lon")},
    }
    image = form.get("image")
    if not isinstance(image, UploadFile) or not image.filename:
        image = None
    return _parse_post_body(raw), image


async def _read_json(request: Request) -> PostCreate:
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Invalid JSON body.", code="invalid_json") from exc
    if not isinstance(raw, dict):
        raise ValidationError("Invalid JSON body.", code="invalid_json")
    return _parse_post_body(raw)


# ---------------------------------------------------------------------------
# POST /post
# ---------------------------------------------------------------------------


@router.post("/post", response_model=PostResponse, status_code=201)
async def create_post(
    request: Request,
    identity: Identity = Depends(get_current_identity),
) -> PostResponse:
    """Create a post authored by the caller.

    Accepts application/json {message, location: {lat, lon}} or
    multipart/form-data with message, lat, lon and an optional image file.
    """
    content_type = request.headers.get("content-type", "").lower()
    image: UploadFile | None = None
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        body, image = await _read_form(request)
    else:
        body = await _read_json(request)

    if contains_filtered_words(body.message, _settings.filtered_words_list):
        raise ValidationError("Message contains forbidden words.", code="filtered_content")

    url: str | None = None
    if image is not None:
        media: ImageStore = request.app.state.media
        data = await image.read(media.max_bytes + 1)
        url = await asyncio.to_thread(media.save, image.filename, data)

    post = Post(
        id=str(uuid.uuid4()),
        user=identity.username,
        message=body.message,
        location=Location(lat=body.location.lat, lon=body.location.lon),
        url=url,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    store: PostStore = request.app.state.post_store
    try:
        await asyncio.to_thread(store.save, post)
    except GeoConnectError:
        if url:
            await asyncio.to_thread(media.delete, url)
        raise
    logger.info("Post %s created by %s", post.id, identity.username)
    return PostResponse.from_post(post)


# ---------------------------------------------------------------------------
# GET / DELETE /post/{post_id}
# ---------------------------------------------------------------------------


@router.get("/post/{post_id}", response_model=PostResponse)
def get_post(
    request: Request,
    post_id: str,
    identity: Identity = Depends(get_current_identity),
) -> PostResponse:
    store: PostStore = request.app.state.post_store
    post = store.get(post_id)
    if post is None:
        raise NotFoundError("Post not found.")
    return PostResponse.from_post(post)


@router.delete("/post/{post_id}", status_code=204)
def delete_post(
    request: Request,
    post_id: str,
    identity: Identity = Depends(get_current_identity),
) -> Response:
    """Delete a post. Only its author or an admin may do so."""
    store: PostStore = request.app.state.post_store
    post = store.get(post_id)
    if post is None:
        raise NotFoundError("Post not found.")

    authorize_delete(post.user, identity)

    if not store.delete(post_id):
        raise NotFoundError("Post not found.")
    if post.url:
        media: ImageStore = request.app.state.media
        media.delete(post.url)
    logger.info("Post %s (owner %s) deleted by %s", post_id, post.user, identity.username)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.get("/search", response_model=list[PostResponse])
def search_nearby(
    request: Request,
    lat: float = Query(ge=-90, le=90),
    lon: float = Query(ge=-180, le=180),
    range_km: float | None = Query(default=None, alias="range", gt=0, le=20000),
    identity: Identity = Depends(get_current_identity),
) -> list[PostResponse]:
    """Posts within range km of (lat, lon). range defaults to DEFAULT_SEARCH_DISTANCE_KM."""
    distance = range_km if range_km is not None else _settings.default_search_distance_km
    store: PostStore = request.app.state.post_store
    posts = store.search_nearby(lat, lon, distance, size=_settings.search_result_limit)
    logger.info("Search lat=%f lon=%f range=%skm -> %d hits", lat, lon, distance, len(posts))
    return [PostResponse.from_post(p) for p in posts]


@router.get("/search/bbox", response_model=list[PostResponse])
def search_bbox(
    request: Request,
    top: float = Query(ge=-90, le=90),
    left: float = Query(ge=-180, le=180),
    bottom: float = Query(ge=-90, le=90),
    right: float = Query(ge=-180, le=180),
    identity: Identity = Depends(get_current_identity),
) -> list[PostResponse]:
    """Posts inside the box with corners (top, left) and (bottom, right)."""
    if top < bottom:
        raise ValidationError("top must be greater than or equal to bottom.", code="invalid_bbox")
    store: PostStore = request.app.state.post_store
    posts = store.search_bbox(top, left, bottom, right, size=_settings.search_result_limit)
    return [PostResponse.from_post(p) for p in posts]


@router.get("/users/{username}/posts", response_model=list[PostResponse])
def list_user_posts(
    request: Request,
    username: str,
    identity: Identity = Depends(get_current_identity),
) -> list[PostResponse]:
    store: PostStore = request.app.state.post_store
    posts = store.search_by_user(username.strip().lower(), size=_settings.search_result_limit)
    return [PostResponse.from_post(p) for p in posts]
