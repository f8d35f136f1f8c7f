"""
posts/models.py -- Domain dataclasses for posts.

These are pure data containers. The to_document()/from_document() pair is
the Data Mapper between a Post and the JSON document stored in Elasticsearch;
it lives here, colocated with the shape it maps.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class Location:
    lat: float
    lon: float


@dataclass
class Post:
    """A geotagged message.

    user is always the verified username of the author, set by the API layer
    from the caller's Identity. id is a UUID4 string assigned at creation and
    doubles as the Elasticsearch document id.
    """

    id: str
    user: str
    message: str
    location: Location
    url: Optional[str] = None  # public image URL, None for text-only posts
    created_at: str = ""  # ISO 8601

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "user": self.user,
            "message": self.message,
            "location": {"lat": self.location.lat, "lon": self.location.lon},
            "created_at": self.created_at,
        }
        if self.url:
            doc["url"] = self.url
        return doc

    @classmethod
    def from_document(cls, post_id: str, source: dict[str, Any]) -> Post:
        loc = source.get("location") or {}
        return cls(
            id=post_id,
            user=source.get("user", ""),
            message=source.get("message", ""),
            location=Location(lat=float(loc.get("lat", 0.0)), lon=float(loc.get("lon", 0.0))),
            url=source.get("url") or None,
            created_at=source.get("created_at", ""),
        )
