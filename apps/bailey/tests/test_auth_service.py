"""
Unit tests for authentication and user services.
Tests password hashing, JWT tokens, email normalization and account lookup.
"""
import jwt
import pytest
from datetime import timedelta
from bailey.services import auth_service, user_service


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_password(self):
        """Same password hashes differently (salt) but both verify."""
        password = "test_password_123"
        hash1 = auth_service.hash_password(password)
        hash2 = auth_service.hash_password(password)

        assert hash1 != hash2
        assert auth_service.verify_password(password, hash1)
        assert auth_service.verify_password(password, hash2)

    def test_verify_password_incorrect(self):
        password_hash = auth_service.hash_password("test_password_123")
        assert auth_service.verify_password("wrong_password", password_hash) is False

    def test_verify_password_empty(self):
        password_hash = auth_service.hash_password("test_password_123")
        assert auth_service.verify_password("", password_hash) is False

    def test_verify_against_garbage_hash(self):
        assert auth_service.verify_password("password", "not-a-bcrypt-hash") is False


class TestJWTTokens:
    """Tests for JWT token creation and verification."""

    def test_verify_token_valid(self):
        token = auth_service.create_access_token({"user_id": 1, "email": "a@b.co"})
        decoded = auth_service.verify_token(token)
        assert decoded["user_id"] == 1
        assert decoded["email"] == "a@b.co"
        assert "exp" in decoded

    def test_verify_token_invalid(self):
        assert auth_service.verify_token("invalid_token_string") is None

    def test_verify_token_expired(self):
        token = auth_service.create_access_token({"user_id": 1}, expires_delta=timedelta(seconds=-1))
        assert auth_service.verify_token(token) is None

    def test_verify_token_wrong_secret(self):
        token = jwt.encode({"user_id": 1}, "some-other-secret", algorithm="HS256")
        assert auth_service.verify_token(token) is None


class TestEmailNormalization:
    def test_lowercases_and_strips(self):
        assert auth_service.normalize_email("  Debater@Example.COM ") == "debater@example.com"

    @pytest.mark.parametrize("email", ["", "no-at-sign", "@example.com", "user@localhost"])
    def test_invalid(self, email):
        with pytest.raises(ValueError):
            auth_service.normalize_email(email)


class TestUserService:
    @pytest.mark.asyncio
    async def test_create_and_lookup(self, db_session):
        user_id = await user_service.create_user(db_session, "new@example.com", "hash")
        by_id = await user_service.get_user_by_id(db_session, user_id)
        by_email = await user_service.get_user_by_email(db_session, "new@example.com")

        assert by_id["email"] == "new@example.com"
        assert "password_hash" not in by_id
        assert by_email["password_hash"] == "hash"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, db_session, test_user):
        with pytest.raises(ValueError, match="already registered"):
            await user_service.create_user(db_session, test_user["email"], "hash")

    @pytest.mark.asyncio
    async def test_missing_user(self, db_session):
        assert await user_service.get_user_by_id(db_session, 4242) is None
        assert await user_service.get_user_by_email(db_session, "ghost@example.com") is None
