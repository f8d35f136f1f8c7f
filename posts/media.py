"""
posts/media.py -- Local-disk image store for post attachments.

Images are written under Settings.media_dir with a UUID4 file name plus the
lowercased original extension, so uploads never overwrite each other and the
client-supplied name never reaches the filesystem. The returned URL is
relative to the API host (Settings.media_url_prefix); api/main.py mounts the
same directory there as static files.

Validation:
  - extension must be in ALLOWED_EXTENSIONS
  - empty uploads are rejected
  - uploads larger than max_bytes raise PayloadTooLargeError (413)

save() is blocking file I/O. Async callers run it via asyncio.to_thread().
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from core.errors import DependencyError, PayloadTooLargeError, ValidationError

logger = logging.getLogger("geoconnect.posts")

ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})


class ImageStore:
    def __init__(self, root: str | Path, url_prefix: str = "/media", max_bytes: int = 10 * 1024 * 1024) -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes
        self.root.mkdir(parents=True, exist_ok=True)

    def validate(self, filename: str, data: bytes) -> str:
        """Return the normalized extension, or raise if the upload is unacceptable."""
        ext = Path(filename or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                f"Image must be one of: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
                code="unsupported_image_type",
            )
        if not data:
            raise ValidationError("Uploaded image is empty.", code="empty_image")
        if len(data) > self.max_bytes:
            raise PayloadTooLargeError(f"Image must be {self.max_bytes // (1024 * 1024)} MB or smaller.")
        return ext

    def save(self, filename: str, data: bytes) -> str:
        """Store the image and return its public URL."""
        ext = self.validate(filename, data)
        name = f"{uuid.uuid4()}{ext}"
        try:
            (self.root / name).write_bytes(data)
        except OSError as exc:
            logger.exception("Failed to write image %s", name)
            raise DependencyError("Image storage unavailable.") from exc
        logger.info("Image stored: %s (%d bytes)", name, len(data))
        return f"{self.url_prefix}/{name}"

    def delete(self, url: str) -> bool:
        """Remove a previously stored image by its URL.

        Returns False if the URL is unknown or the file could not be removed.
        """
        if not url.startswith(self.url_prefix + "/"):
            return False
        name = Path(url[len(self.url_prefix) + 1 :]).name
        path = self.root / name
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError:
            logger.warning("Failed to remove image %s", name, exc_info=True)
            return False
        return True
