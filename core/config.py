"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for GeoConnect happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, admin_users -> ADMIN_USERS).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode (DEBUG=true) generates a SECRET_KEY with a warning;
      production mode refuses to start without one.

List-valued settings (ADMIN_USERS, FILTERED_WORDS, ALLOWED_HOSTS, CORS_ORIGINS)
are plain comma-separated strings. The *_list properties split them so callers
never parse env syntax themselves.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or posts/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("geoconnect.config")

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (DEBUG=true still required for the
    secret key).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Tokens are stateless and cannot be revoked, so the lifetime is fixed
    # at 24 hours.
    token_expire_seconds: int = 24 * 60 * 60
    bcrypt_rounds: int = 12
    # Comma-separated usernames with override authority over ownership checks.
    admin_users: str = ""

    # ------------------------------------------------------------------
    # Storage collaborators
    # ------------------------------------------------------------------

    database_url: str = f"sqlite:///{_PROJECT_ROOT / 'auth' / 'geoconnect_users.db'}"
    elasticsearch_url: str = "http://localhost:9200"
    posts_index: str = "posts"

    media_dir: str = str(_PROJECT_ROOT / "media")
    media_url_prefix: str = "/media"
    max_upload_bytes: int = 10 * 1024 * 1024

    # ------------------------------------------------------------------
    # Posts and search
    # ------------------------------------------------------------------

    default_search_distance_km: float = 200.0
    search_result_limit: int = 100
    filtered_words: str = "spam,advertisement,politics"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    signup_rate_limit: str = "5/minute"
    rate_limit_enabled: bool = True
    allowed_hosts: str = "localhost,127.0.0.1,*.localhost,testserver"
    cors_origins: str = "http://localhost,http://localhost:3000,http://127.0.0.1"

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def admin_users_list(self) -> list[str]:
        return _split_csv(self.admin_users)

    @property
    def filtered_words_list(self) -> list[str]:
        return _split_csv(self.filtered_words)

    @property
    def allowed_hosts_list(self) -> list[str]:
        return _split_csv(self.allowed_hosts)

    @property
    def cors_origins_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if SECRET_KEY is missing. Rotating
            the key invalidates every outstanding token, so a random key per
            restart would silently log everyone out.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.default_search_distance_km <= 0:
            raise ValueError("DEFAULT_SEARCH_DISTANCE_KM must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
