"""Unit tests for bot API keys and user JWTs."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from xdrop.auth.api_keys import (
    KEY_PREFIX,
    LOOKUP_PREFIX_LENGTH,
    generate_api_key,
    looks_like_api_key,
    lookup_prefix,
    verify_api_key,
)
from xdrop.auth.jwt import create_access_token, verify_token
from xdrop.config import get_settings


class TestApiKeys:
    def test_key_format(self):
        full_key, prefix, key_hash = generate_api_key()
        assert full_key.startswith(KEY_PREFIX)
        assert len(full_key) == len(KEY_PREFIX) + 32
        assert prefix == full_key[:LOOKUP_PREFIX_LENGTH]
        assert key_hash.startswith("$argon2id$")

    def test_verify_roundtrip(self):
        full_key, _, key_hash = generate_api_key()
        assert verify_api_key(full_key, key_hash)
        assert not verify_api_key(full_key + "x", key_hash)

    def test_verify_rejects_garbage_hash(self):
        assert not verify_api_key("oc_abc", "not-a-hash")

    def test_lookup_prefix_and_detection(self):
        assert lookup_prefix("oc_123456789abcdef") == "oc_123456789"
        assert looks_like_api_key("oc_x")
        assert not looks_like_api_key("eyJhbGciOi")


class TestJwt:
    def test_roundtrip(self):
        token = create_access_token("user-1", email="a@b.c")
        payload = verify_token(token)
        assert payload["sub"] == "user-1"
        assert payload["email"] == "a@b.c"

    def test_expired(self):
        settings = get_settings()
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "u", "aud": settings.jwt_audience, "iat": past, "exp": past + timedelta(minutes=1)},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)

    def test_wrong_secret(self):
        settings = get_settings()
        token = jwt.encode({"sub": "u", "aud": settings.jwt_audience}, "another-secret-entirely-xx", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_missing_subject(self):
        settings = get_settings()
        token = jwt.encode({"aud": settings.jwt_audience}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        with pytest.raises(jwt.InvalidTokenError, match="subject"):
            verify_token(token)
