"""Tests for alert configuration validation and upsert."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from sugar_monitor.schemas.alert_config import (
    AlertConfigInput,
    EmailDestination,
    PushDestination,
    SmsDestination,
)
from sugar_monitor.services.alert_config import (
    normalize_destinations,
    save_alert_config,
    toggle_alert_config,
)

MODULE = "sugar_monitor.services.alert_config"


def _user(email="pat@example.com"):
    user = MagicMock()
    user.id = uuid.uuid4()
    user.email = email
    return user


def _db():
    db = AsyncMock()
    db.add = MagicMock()
    return db


class TestAlertConfigInput:
    def test_rejects_high_not_above_low(self):
        with pytest.raises(ValidationError, match="High threshold must be greater"):
            AlertConfigInput(high_threshold=100, low_threshold=100)

    @pytest.mark.parametrize(
        ("high", "low"), [(99, 70), (501, 70), (180, 29), (180, 101)]
    )
    def test_rejects_out_of_range_thresholds(self, high, low):
        with pytest.raises(ValidationError):
            AlertConfigInput(high_threshold=high, low_threshold=low)

    def test_parses_tagged_destinations(self):
        body = AlertConfigInput(
            high_threshold=180,
            low_threshold=70,
            notification_destinations=[
                {"kind": "email", "address": "care@example.com"},
                {"kind": "sms", "number": "+1 555-123-4567"},
                {"kind": "push", "device_token": "device-token-abc"},
            ],
            notification_emails=["doc@example.com"],
        )

        destinations = body.all_destinations()
        assert isinstance(destinations[0], EmailDestination)
        assert isinstance(destinations[1], SmsDestination)
        assert destinations[1].number == "+15551234567"
        assert isinstance(destinations[2], PushDestination)
        assert destinations[3].address == "doc@example.com"

    def test_rejects_unknown_kind_and_bad_number(self):
        with pytest.raises(ValidationError):
            AlertConfigInput(
                high_threshold=180,
                low_threshold=70,
                notification_destinations=[{"kind": "pager", "code": "1"}],
            )
        with pytest.raises(ValidationError):
            AlertConfigInput(
                high_threshold=180,
                low_threshold=70,
                notification_destinations=[{"kind": "sms", "number": "call me"}],
            )


class TestNormalizeDestinations:
    def test_owner_email_first_and_duplicates_removed(self):
        result = normalize_destinations(
            "pat@example.com",
            [
                EmailDestination(address="care@example.com"),
                EmailDestination(address="PAT@example.com"),
                EmailDestination(address="care@example.com"),
                SmsDestination(number="+15551234567"),
            ],
        )

        assert result == [
            {"kind": "email", "address": "pat@example.com"},
            {"kind": "email", "address": "care@example.com"},
            {"kind": "sms", "number": "+15551234567"},
        ]

    def test_without_owner_email(self):
        assert normalize_destinations(None, []) == []


class TestSaveAlertConfig:
    @pytest.mark.asyncio
    async def test_service_rejects_unordered_thresholds(self):
        body = AlertConfigInput.model_construct(
            high_threshold=90.0,
            low_threshold=90.0,
            notification_destinations=[],
            notification_emails=[],
        )
        db = _db()

        with pytest.raises(ValueError, match="must be greater than"):
            await save_alert_config(_user(), body, db)

        db.add.assert_not_called()
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_first_save_creates_config_with_owner_email(self):
        user = _user()
        body = AlertConfigInput(
            high_threshold=200,
            low_threshold=80,
            notification_emails=["care@example.com"],
        )
        db = _db()

        with (
            patch(f"{MODULE}.get_alert_config", AsyncMock(return_value=None)),
            patch(f"{MODULE}.log_activity", AsyncMock()) as audit,
        ):
            config, created = await save_alert_config(user, body, db)

        assert created is True
        assert config.user_id == user.id
        assert config.high_threshold == 200
        assert config.low_threshold == 80
        assert config.email_addresses == ["pat@example.com", "care@example.com"]
        db.add.assert_called_once_with(config)
        assert audit.await_args.args[2] == "CREATE"

    @pytest.mark.asyncio
    async def test_existing_config_is_replaced(self):
        user = _user()
        existing = MagicMock()
        existing.id = uuid.uuid4()
        body = AlertConfigInput(high_threshold=220, low_threshold=60)
        db = _db()

        with (
            patch(f"{MODULE}.get_alert_config", AsyncMock(return_value=existing)),
            patch(f"{MODULE}.log_activity", AsyncMock()) as audit,
        ):
            config, created = await save_alert_config(user, body, db)

        assert created is False
        assert config is existing
        assert existing.high_threshold == 220
        assert existing.notification_destinations == [
            {"kind": "email", "address": "pat@example.com"}
        ]
        db.add.assert_not_called()
        assert audit.await_args.args[2] == "UPDATE"

    @pytest.mark.asyncio
    async def test_concurrent_first_save_falls_back_to_update(self):
        user = _user()
        existing = MagicMock()
        existing.id = uuid.uuid4()
        body = AlertConfigInput(high_threshold=190, low_threshold=75)
        db = _db()
        db.commit.side_effect = [IntegrityError("insert", {}, Exception("dup")), None]

        with (
            patch(
                f"{MODULE}.get_alert_config",
                AsyncMock(side_effect=[None, existing]),
            ),
            patch(f"{MODULE}.log_activity", AsyncMock()),
        ):
            config, created = await save_alert_config(user, body, db)

        assert created is False
        assert config is existing
        assert existing.low_threshold == 75
        db.rollback.assert_awaited_once()


class TestToggleAlertConfig:
    @pytest.mark.asyncio
    async def test_flips_enabled(self):
        existing = MagicMock()
        existing.enabled = True
        db = _db()

        with (
            patch(f"{MODULE}.get_alert_config", AsyncMock(return_value=existing)),
            patch(f"{MODULE}.log_activity", AsyncMock()),
        ):
            config = await toggle_alert_config(uuid.uuid4(), db)

        assert config.enabled is False
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_config_returns_none(self):
        with patch(f"{MODULE}.get_alert_config", AsyncMock(return_value=None)):
            assert await toggle_alert_config(uuid.uuid4(), _db()) is None
