"""Unit tests for posts/media.py (ImageStore) and posts/filters.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import PayloadTooLargeError, ValidationError
from posts.filters import contains_filtered_words
from posts.media import ImageStore

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def media(tmp_path: Path) -> ImageStore:
    return ImageStore(tmp_path / "media", url_prefix="/media/", max_bytes=1024)


class TestImageStore:
    def test_save_writes_uuid_named_file(self, media: ImageStore) -> None:
        url = media.save("Holiday Photo.PNG", PNG_BYTES)
        assert url.startswith("/media/")
        name = url.rsplit("/", 1)[1]
        assert name.endswith(".png")
        assert "Holiday" not in name
        assert (media.root / name).read_bytes() == PNG_BYTES

    def test_two_uploads_never_collide(self, media: ImageStore) -> None:
        assert media.save("a.jpg", b"one") != media.save("a.jpg", b"two")

    @pytest.mark.parametrize("filename", ["script.exe", "noext", "", "../../etc/passwd"])
    def test_rejects_unsupported_extension(self, media: ImageStore, filename: str) -> None:
        with pytest.raises(ValidationError) as excinfo:
            media.save(filename, PNG_BYTES)
        assert excinfo.value.code == "unsupported_image_type"

    def test_rejects_empty(self, media: ImageStore) -> None:
        with pytest.raises(ValidationError):
            media.save("a.png", b"")

    def test_rejects_oversize(self, media: ImageStore) -> None:
        with pytest.raises(PayloadTooLargeError) as excinfo:
            media.save("a.png", b"x" * 1025)
        assert excinfo.value.status_code == 413

    def test_delete_removes_file(self, media: ImageStore) -> None:
        url = media.save("a.gif", b"GIF89a")
        assert media.delete(url) is True
        assert list(media.root.iterdir()) == []
        assert media.delete(url) is False

    def test_delete_survives_filesystem_error(self, media: ImageStore, monkeypatch) -> None:
        url = media.save("a.png", PNG_BYTES)

        def refuse(self, missing_ok=False):
            raise PermissionError("read-only volume")

        monkeypatch.setattr(Path, "unlink", refuse)
        assert media.delete(url) is False
        monkeypatch.undo()
        assert len(list(media.root.iterdir())) == 1

    def test_delete_ignores_foreign_urls(self, media: ImageStore) -> None:
        assert media.delete("https://example.com/a.png") is False


class TestContentFilter:
    WORDS = ["spam", "advertisement", "politics"]

    @pytest.mark.parametrize("message", ["Buy SPAM now", "free Advertisement here", "no politics please"])
    def test_blocked(self, message: str) -> None:
        assert contains_filtered_words(message, self.WORDS) is True

    @pytest.mark.parametrize("message", ["sunset at the pier", "", "spa day"])
    def test_allowed(self, message: str) -> None:
        assert contains_filtered_words(message, self.WORDS) is False

    def test_empty_word_list_allows_everything(self) -> None:
        assert contains_filtered_words("spam", []) is False
