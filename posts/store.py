"""
posts/store.py -- Elasticsearch-backed persistence layer for posts.

Pattern: Repository. PostStore is the only code that speaks the Elasticsearch
query DSL; routes call save/get/delete/search_* and get Post dataclasses back.
Post.to_document()/Post.from_document() are the mappers.

Geo search is delegated to Elasticsearch entirely: the index maps location
as geo_point and queries use geo_distance and geo_bounding_box. No distance
math happens in this process.

Writes use refresh="wait_for" so a post is searchable as soon as the create
request returns.

Index bootstrap: ensure_index() is retried before every save and search until
it has succeeded once. Indexing into a missing index would let Elasticsearch
create it with a dynamic mapping, where location is not a geo_point and geo
queries fail.

Errors: NotFoundError from get/delete maps to None/False. Every other
ApiError or TransportError is logged and re-raised as DependencyError so the
API layer answers 503 without leaking cluster details.

Usage:
    es = Elasticsearch("http://localhost:9200")
    store = PostStore(es, index="posts")
    store.ensure_index()
    store.save(post)
    hits = store.search_nearby(37.77, -122.42, distance_km=50)
    store.close()
"""

from __future__ import annotations

import logging
from typing import Any

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError

from core.errors import DependencyError
from posts.models import Post

logger = logging.getLogger("geoconnect.posts")

# user is a keyword for exact term matches; message is analyzed text.
INDEX_MAPPINGS: dict[str, Any] = {
    "properties": {
        "user": {"type": "keyword"},
        "message": {"type": "text"},
        "location": {"type": "geo_point"},
        "url": {"type": "keyword", "index": False},
        "created_at": {"type": "date"},
    }
}

_DEFAULT_SIZE = 100


def _km(distance_km: float) -> str:
    """Render a distance in fixed notation; the ES distance parser rejects 1e-05km."""
    return f"{distance_km:f}".rstrip("0").rstrip(".") + "km"


class PostStore:
    def __init__(self, client: Elasticsearch, index: str = "posts") -> None:
        self.client = client
        self.index = index
        self._index_ready = False

    # ------------------------------------------------------------------
    # Index bootstrap
    # ------------------------------------------------------------------

    def ensure_index(self) -> bool:
        """Create the posts index with its mapping if it does not exist.

        Returns True if the index was created by this call.
        """
        try:
            if self.client.indices.exists(index=self.index):
                self._index_ready = True
                return False
            resp = self.client.indices.create(index=self.index, mappings=INDEX_MAPPINGS)
        except (ApiError, TransportError) as exc:
            logger.exception("Could not create index %s", self.index)
            raise DependencyError("Search backend unavailable.") from exc
        if not resp.get("acknowledged", False):
            logger.warning("Create index %s not acknowledged", self.index)
        self._index_ready = True
        logger.info("Created index %s", self.index)
        return True

    def _require_index(self) -> None:
        if not self._index_ready:
            self.ensure_index()

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except TransportError:
            return False

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def save(self, post: Post) -> Post:
        self._require_index()
        try:
            self.client.index(index=self.index, id=post.id, document=post.to_document(), refresh="wait_for")
        except (ApiError, TransportError) as exc:
            logger.exception("Failed to index post %s", post.id)
            raise DependencyError("Search backend unavailable.") from exc
        logger.info("Post saved: index=%s id=%s user=%s", self.index, post.id, post.user)
        return post

    def get(self, post_id: str) -> Post | None:
        try:
            resp = self.client.get(index=self.index, id=post_id)
        except NotFoundError:
            return None
        except (ApiError, TransportError) as exc:
            logger.exception("Failed to fetch post %s", post_id)
            raise DependencyError("Search backend unavailable.") from exc
        return Post.from_document(resp["_id"], resp["_source"])

    def delete(self, post_id: str) -> bool:
        """Delete a post. Returns False if it was already gone."""
        try:
            self.client.delete(index=self.index, id=post_id, refresh="wait_for")
        except NotFoundError:
            return False
        except (ApiError, TransportError) as exc:
            logger.exception("Failed to delete post %s", post_id)
            raise DependencyError("Search backend unavailable.") from exc
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search_nearby(self, lat: float, lon: float, distance_km: float, size: int = _DEFAULT_SIZE) -> list[Post]:
        """Posts within distance_km of (lat, lon), nearest first."""
        query = {
            "geo_distance": {
                "distance": _km(distance_km),
                "location": {"lat": lat, "lon": lon},
            }
        }
        sort = [
            {
                "_geo_distance": {
                    "location": {"lat": lat, "lon": lon},
                    "order": "asc",
                    "unit": "km",
                }
            }
        ]
        return self._search(query, size, sort)

    def search_bbox(self, top: float, left: float, bottom: float, right: float, size: int = _DEFAULT_SIZE) -> list[Post]:
        """Posts inside the box whose top-left and bottom-right corners are given."""
        query = {
            "geo_bounding_box": {
                "location": {
                    "top_left": {"lat": top, "lon": left},
                    "bottom_right": {"lat": bottom, "lon": right},
                }
            }
        }
        return self._search(query, size, [{"created_at": {"order": "desc"}}])

    def search_by_user(self, username: str, size: int = _DEFAULT_SIZE) -> list[Post]:
        """Posts authored by username, newest first."""
        query = {"term": {"user": username}}
        return self._search(query, size, [{"created_at": {"order": "desc"}}])

    def _search(self, query: dict[str, Any], size: int, sort: list[dict[str, Any]]) -> list[Post]:
        self._require_index()
        try:
            resp = self.client.search(index=self.index, query=query, sort=sort, size=size)
        except (ApiError, TransportError) as exc:
            logger.exception("Search failed on %s", self.index)
            raise DependencyError("Search backend unavailable.") from exc
        hits = resp["hits"]["hits"]
        logger.debug("Query took %sms, %d hits", resp.get("took"), len(hits))
        return [Post.from_document(hit["_id"], hit["_source"]) for hit in hits]

    def close(self) -> None:
        self.client.close()
