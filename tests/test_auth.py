"""Tests for bearer token authentication and role checks."""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from jose import jwt

from sugar_monitor.config import settings
from sugar_monitor.core.security import (
    TokenData,
    create_access_token,
    decode_access_token,
)
from sugar_monitor.models.user import UserRole


def _mock_user(role=UserRole.PATIENT, is_active=True):
    user = MagicMock()
    user.id = uuid.uuid4()
    user.email = "pat@example.com"
    user.role = role
    user.is_active = is_active
    return user


def _db_returning(user):
    db = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    db.execute.return_value = result
    return db


def _bearer(user):
    token = create_access_token(user.id, user.email, user.role.value)
    return {"Authorization": f"Bearer {token}"}


class TestTokens:
    def test_round_trip(self):
        user_id = uuid.uuid4()

        payload = decode_access_token(
            create_access_token(user_id, "pat@example.com", "patient")
        )

        data = TokenData(payload)
        assert data.user_id == user_id
        assert data.role == "patient"

    def test_expired_token_rejected(self):
        token = create_access_token(
            uuid.uuid4(), "pat@example.com", "patient", timedelta(seconds=-1)
        )

        assert decode_access_token(token) is None

    def test_wrong_type_rejected(self):
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "type": "refresh"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        assert decode_access_token(token) is None

    def test_wrong_key_rejected(self):
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "type": "access"},
            "another-signing-key",
            algorithm=settings.jwt_algorithm,
        )

        assert decode_access_token(token) is None


class TestCurrentUser:
    @pytest.mark.asyncio
    async def test_valid_token(self, client, override):
        user = _mock_user()
        override(db=_db_returning(user))

        response = await client.get(
            "/api/readings/trends",
            params={"days": 0},
            headers=_bearer(user),
        )

        # Authenticated, so the request reaches query validation
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_malformed_header(self, client, override):
        override(db=_db_returning(None))

        response = await client.get(
            "/api/alerts/config", headers={"Authorization": "Token abc"}
        )

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, override):
        override(db=_db_returning(None))

        response = await client.get(
            "/api/alerts/config", headers=_bearer(_mock_user())
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_disabled_user(self, client, override):
        user = _mock_user(is_active=False)
        override(db=_db_returning(user))

        response = await client.get("/api/alerts/config", headers=_bearer(user))

        assert response.status_code == 401
        assert response.json()["detail"] == "User account is disabled"

    @pytest.mark.asyncio
    async def test_role_checked_from_database_not_token(self, client, override):
        user = _mock_user(role=UserRole.PATIENT)
        override(db=_db_returning(user))
        token = create_access_token(user.id, user.email, "admin")

        response = await client.get(
            "/api/alerts/scheduler/status",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 403
