"""Tests for auth security functions."""

from datetime import timedelta

import pytest
from jose import JWTError, jwt

from blog_comments.auth.security import create_access_token, decode_access_token
from blog_comments.config.settings import get_settings


class TestAccessToken:
    """Tests for access token verification."""

    def test_decode_access_token(self) -> None:
        """Should decode a valid token."""
        # Arrange
        token = create_access_token(
            {"sub": "user-1", "email": "lector@blog.test", "role": "user"}
        )

        # Act
        payload = decode_access_token(token)

        # Assert
        assert payload["sub"] == "user-1"
        assert payload["email"] == "lector@blog.test"
        assert payload["type"] == "access"

    def test_decode_access_token_expired(self) -> None:
        """Should raise for expired token."""
        token = create_access_token(
            {"sub": "user-1"}, expires_delta=timedelta(seconds=-1)
        )

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        """Should raise for invalid token."""
        with pytest.raises(JWTError):
            decode_access_token("not-a-token")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise for a refresh token."""
        settings = get_settings()
        token = jwt.encode(
            {"sub": "user-1", "type": "refresh"},
            settings.auth_secret_key,
            algorithm=settings.auth_algorithm,
        )

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_without_subject(self) -> None:
        token = create_access_token({"email": "anonimo@blog.test"})

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_foreign_signature(self) -> None:
        token = jwt.encode(
            {"sub": "user-1", "type": "access"},
            "otra-clave-que-no-es-la-configurada-32chars",
            algorithm=get_settings().auth_algorithm,
        )

        with pytest.raises(JWTError):
            decode_access_token(token)
