"""Unit tests for core/config.py -- Settings validation and derived lists."""

from __future__ import annotations

import pytest

from core.config import Settings


def test_debug_generates_secret_key() -> None:
    settings = Settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_production_requires_secret_key() -> None:
    with pytest.raises(ValueError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="")


def test_short_secret_key_rejected() -> None:
    with pytest.raises(ValueError, match="at least 32"):
        Settings(debug=True, secret_key="short")


def test_token_lifetime_defaults_to_24_hours() -> None:
    settings = Settings(debug=True, secret_key="k" * 32, _env_file=None)
    assert settings.token_expire_seconds == 24 * 60 * 60


def test_bcrypt_rounds_bounds() -> None:
    with pytest.raises(ValueError):
        Settings(debug=True, secret_key="k" * 32, bcrypt_rounds=3)


def test_csv_settings_are_split() -> None:
    settings = Settings(
        debug=True,
        secret_key="k" * 32,
        admin_users=" root_admin, ,Moderator ",
        filtered_words="spam,ads",
    )
    assert settings.admin_users_list == ["root_admin", "Moderator"]
    assert settings.filtered_words_list == ["spam", "ads"]
