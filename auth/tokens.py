"""
auth/tokens.py -- Password hashing and bearer token issue/verify.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). Every call to
       hash_password() draws a fresh salt, which bcrypt embeds in the digest,
       so two hashes of the same password differ. The cost factor comes from
       Settings.bcrypt_rounds.

       bcrypt only reads the first 72 bytes of its input; bcrypt 5 refuses
       longer input outright. Rather than silently truncating, GeoConnect
       bounds passwords at MAX_PASSWORD_BYTES (72 bytes of UTF-8) and rejects
       longer ones at signup with PasswordTooLongError. verify_password()
       returns False for over-long input instead of raising.

       _DUMMY_HASH enables timing equalization in authenticate_user() so the
       response time does not reveal whether a username exists.

  Tokens: python-jose with HS256. A token carries sub (username), admin
       (bool), iat and exp. TokenService is built once at startup from the
       server secret; verify() is a pure function of the token, the secret
       and the clock. There is no server-side token state and so no
       revocation -- a leaked token stays valid until exp.

Layer rule: no imports from api/ or posts/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity, TokenStatus, TokenVerification
from core.config import get_settings
from core.errors import HashingError, PasswordTooLongError

logger = logging.getLogger("geoconnect.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 0) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Args:
        plain:  The password. Must encode to at most MAX_PASSWORD_BYTES.
        rounds: bcrypt cost factor. If 0 (default), uses Settings.bcrypt_rounds.

    Raises:
        PasswordTooLongError: the password exceeds MAX_PASSWORD_BYTES.
        HashingError: bcrypt itself failed (salt generation, resources).
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise PasswordTooLongError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    cost = rounds if rounds > 0 else _settings.bcrypt_rounds
    try:
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=cost)).decode("utf-8")
    except (ValueError, OSError) as exc:
        logger.exception("bcrypt hashing failed")
        raise HashingError("Password hashing failed.") from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Never raises: a mismatch, a malformed hash or an over-long password all
    return False.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("geoconnect_timing_dummy")


def equalize_timing(plain: str) -> None:
    """Burn one bcrypt verification for a login that has no stored hash."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Bearer tokens
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies signed, time-limited identity tokens.

    Usage:
        tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        token = tokens.issue("alice", is_admin=False)
        result = tokens.verify(token)
        if result.ok:
            result.identity.username  # "alice"

    The clock is injectable so expiry can be exercised without sleeping.
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = 24 * 60 * 60,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty secret key.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._clock = clock

    def issue(self, username: str, is_admin: bool) -> str:
        """Encode a signed JWT for username that expires expire_seconds from now."""
        now = self._clock()
        payload = {
            "sub": username,
            "admin": bool(is_admin),
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.expire_seconds)).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenVerification:
        """Verify signature, claim structure and expiry. Never raises.

        Expiry is checked against the injected clock rather than by
        python-jose, so jose's own exp check is switched off.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError:
            return TokenVerification(TokenStatus.invalid)

        username = claims.get("sub")
        is_admin = claims.get("admin")
        expires_at = claims.get("exp")
        if not isinstance(username, str) or not username:
            return TokenVerification(TokenStatus.invalid)
        if not isinstance(is_admin, bool):
            return TokenVerification(TokenStatus.invalid)
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            return TokenVerification(TokenStatus.invalid)

        if self._clock().timestamp() >= expires_at:
            return TokenVerification(TokenStatus.expired)
        return TokenVerification(TokenStatus.authenticated, Identity(username=username, is_admin=is_admin))
