"""
tests/test_tokens.py -- Unit tests for password hashing and TokenService.

Covers:
  - bcrypt hash/verify round trip, per-call salt, mismatch, malformed hash
  - the 72-byte password bound (hash raises, verify returns False)
  - token issue/verify: identity claims, admin flag, expiry via injected clock
  - rejection of tampered, foreign-key, malformed and wrong-shape tokens
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Identity, TokenStatus
from auth.tokens import MAX_PASSWORD_BYTES, TokenService, hash_password, verify_password
from core.errors import PasswordTooLongError, ValidationError

SECRET = "s" * 48

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


class TestPasswordHashing:
    @pytest.mark.parametrize("password", ["pw123", "correct horse battery staple", "pässwörd", "x"])
    def test_verify_matches_and_rejects_suffix(self, password: str) -> None:
        digest = hash_password(password)
        assert verify_password(password, digest) is True
        assert verify_password(password + "x", digest) is False

    def test_same_password_hashes_differently(self) -> None:
        """A fresh salt per call means two digests of one password differ."""
        assert hash_password("pw123") != hash_password("pw123")

    def test_digest_is_not_plaintext(self) -> None:
        digest = hash_password("pw123")
        assert "pw123" not in digest
        assert digest.startswith("$2")

    def test_explicit_rounds_are_embedded(self) -> None:
        digest = hash_password("pw123", rounds=5)
        assert digest.split("$")[2] == "05"

    def test_malformed_hash_returns_false(self) -> None:
        assert verify_password("pw123", "not-a-bcrypt-hash") is False

    def test_password_at_bound_is_accepted(self) -> None:
        password = "a" * MAX_PASSWORD_BYTES
        assert verify_password(password, hash_password(password)) is True

    def test_password_over_bound_is_rejected(self) -> None:
        with pytest.raises(PasswordTooLongError):
            hash_password("a" * (MAX_PASSWORD_BYTES + 1))

    def test_bound_is_measured_in_bytes(self) -> None:
        """Multi-byte characters count by their UTF-8 length."""
        with pytest.raises(ValidationError):
            hash_password("é" * 37)  # 74 bytes

    def test_verify_over_bound_returns_false(self) -> None:
        digest = hash_password("a" * MAX_PASSWORD_BYTES)
        assert verify_password("a" * (MAX_PASSWORD_BYTES + 1), digest) is False


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class _Clock:
    """Settable clock for expiry tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> _Clock:
    return _Clock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def tokens(clock: _Clock) -> TokenService:
    return TokenService(SECRET, expire_seconds=24 * 3600, clock=clock)


class TestTokenService:
    def test_verify_before_expiry_returns_identity(self, tokens: TokenService) -> None:
        result = tokens.verify(tokens.issue("alice", is_admin=False))
        assert result.status is TokenStatus.authenticated
        assert result.ok
        assert result.identity == Identity(username="alice", is_admin=False)

    def test_admin_flag_round_trips(self, tokens: TokenService) -> None:
        result = tokens.verify(tokens.issue("root_admin", is_admin=True))
        assert result.identity == Identity(username="root_admin", is_admin=True)

    def test_verify_after_expiry_is_expired(self, tokens: TokenService, clock: _Clock) -> None:
        token = tokens.issue("alice", is_admin=False)
        clock.now += timedelta(hours=24, seconds=1)
        result = tokens.verify(token)
        assert result.status is TokenStatus.expired
        assert result.identity is None

    def test_token_valid_just_before_expiry(self, tokens: TokenService, clock: _Clock) -> None:
        token = tokens.issue("alice", is_admin=False)
        clock.now += timedelta(hours=23, minutes=59)
        assert tokens.verify(token).ok

    def test_token_expires_exactly_at_ttl(self, tokens: TokenService, clock: _Clock) -> None:
        token = tokens.issue("alice", is_admin=False)
        clock.now += timedelta(hours=24)
        assert tokens.verify(token).status is TokenStatus.expired

    def test_claims_carry_absolute_expiry(self, tokens: TokenService, clock: _Clock) -> None:
        claims = jwt.get_unverified_claims(tokens.issue("alice", is_admin=False))
        assert claims["sub"] == "alice"
        assert claims["admin"] is False
        assert claims["exp"] - claims["iat"] == 24 * 3600
        assert claims["iat"] == int(clock.now.timestamp())

    def test_other_secret_is_invalid(self, tokens: TokenService, clock: _Clock) -> None:
        other = TokenService("o" * 48, clock=clock)
        assert tokens.verify(other.issue("alice", is_admin=True)).status is TokenStatus.invalid

    def test_tampered_payload_is_invalid(self, tokens: TokenService) -> None:
        header, _payload, signature = tokens.issue("alice", is_admin=False).split(".")
        forged = jwt.encode({"sub": "alice", "admin": True, "exp": 9999999999}, "x" * 48, algorithm="HS256")
        forged_payload = forged.split(".")[1]
        result = tokens.verify(f"{header}.{forged_payload}.{signature}")
        assert result.status is TokenStatus.invalid

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", "Bearer xyz"])
    def test_malformed_token_is_invalid(self, tokens: TokenService, garbage: str) -> None:
        assert tokens.verify(garbage).status is TokenStatus.invalid

    def test_unsigned_token_is_invalid(self, tokens: TokenService) -> None:
        header = "eyJhbGciOiJub25lIiwidHlwIjoiSldUIn0"  # {"alg":"none","typ":"JWT"}
        payload = jwt.get_unverified_claims(tokens.issue("alice", is_admin=False))
        token = jwt.encode(payload, SECRET, algorithm="HS256")
        unsigned = f"{header}.{token.split('.')[1]}."
        assert tokens.verify(unsigned).status is TokenStatus.invalid

    @pytest.mark.parametrize(
        "claims",
        [
            {"admin": False, "exp": 9999999999},  # no sub
            {"sub": "alice", "exp": 9999999999},  # no admin flag
            {"sub": "alice", "admin": "yes", "exp": 9999999999},  # admin not a bool
            {"sub": "alice", "admin": False},  # no exp
            {"sub": "", "admin": False, "exp": 9999999999},  # empty subject
        ],
    )
    def test_wrong_claim_shape_is_invalid(self, tokens: TokenService, claims: dict) -> None:
        token = jwt.encode(claims, SECRET, algorithm="HS256")
        assert tokens.verify(token).status is TokenStatus.invalid

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenService("")
