"""Unit tests for JWT token creation and decoding."""

from datetime import timedelta

import pytest
from jose import JWTError

from subtrack.auth.tokens import create_access_token, decode_token


class TestCreateAccessToken:
    """Test access token creation."""

    def test_contains_type_access(self):
        payload = decode_token(create_access_token("user-123"))
        assert payload["type"] == "access"

    def test_contains_sub_claim(self):
        payload = decode_token(create_access_token("user-abc"))
        assert payload["sub"] == "user-abc"

    def test_contains_iat_and_exp(self):
        payload = decode_token(create_access_token("user-123"))
        assert "iat" in payload
        assert "exp" in payload

    def test_custom_expiry_delta(self):
        token = create_access_token("user-123", expires_delta=timedelta(hours=1))
        payload = decode_token(token)
        assert payload["exp"] - payload["iat"] == 3600


class TestDecodeToken:
    """Test token decoding and validation."""

    def test_decode_expired_token_raises(self):
        token = create_access_token("user-123", expires_delta=timedelta(seconds=-1))
        with pytest.raises(JWTError):
            decode_token(token)

    def test_decode_invalid_token_raises(self):
        with pytest.raises(JWTError):
            decode_token("not.a.valid.token")

    def test_decode_empty_string_raises(self):
        with pytest.raises(JWTError):
            decode_token("")
