"""Password hashing, JWTs and input sanitising."""

import time

import jwt
import pytest
from fastapi import HTTPException

from studystreak.core.config import get_settings
from studystreak.core.security import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    sanitize_input,
    verify_password,
)


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("Str0ng!Pass")
        assert hashed != "Str0ng!Pass"
        assert verify_password("Str0ng!Pass", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestTokens:
    def test_access_token_claims(self):
        payload = decode_token(create_access_token(7, "a@example.com", "USER"))
        assert payload["sub"] == "7"
        assert payload["type"] == ACCESS_TOKEN
        assert payload["email"] == "a@example.com"
        assert payload["role"] == "USER"
        assert payload["jti"]

    def test_refresh_token_keeps_given_jti(self):
        payload = decode_token(create_refresh_token(7, jti="abc123"), REFRESH_TOKEN)
        assert payload["jti"] == "abc123"

    def test_type_mismatch(self):
        with pytest.raises(HTTPException) as exc:
            decode_token(create_refresh_token(7), ACCESS_TOKEN)
        assert exc.value.status_code == 401

    def test_expired(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "1", "type": ACCESS_TOKEN, "jti": "x", "exp": int(time.time()) - 10},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(HTTPException) as exc:
            decode_token(token)
        assert exc.value.detail == "Token expired"

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "1", "type": ACCESS_TOKEN, "jti": "x"}, "other-secret", algorithm="HS256")
        with pytest.raises(HTTPException) as exc:
            decode_token(token)
        assert exc.value.detail == "Invalid token"

    def test_tokens_are_unique(self):
        assert create_access_token(1, "a@example.com", "USER") != create_access_token(1, "a@example.com", "USER")


class TestSanitize:
    @pytest.mark.parametrize("raw,clean", [
        ("  plain text ", "plain text"),
        ("<script>alert(1)</script>", "scriptalert(1)/script"),
        ("JavaScript:void(0)", "void(0)"),
        ("img onerror=boom", "img boom"),
    ])
    def test_strips_markup(self, raw, clean):
        assert sanitize_input(raw) == clean

    def test_none_passes_through(self):
        assert sanitize_input(None) is None
