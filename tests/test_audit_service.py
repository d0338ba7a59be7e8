"""Tests for the audit logging service."""

import json
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from sugar_monitor.services.audit_service import log_activity


def _db():
    db = AsyncMock()
    db.add = MagicMock()
    return db


class TestLogActivity:
    @pytest.mark.asyncio
    async def test_adds_and_commits_entry(self):
        db = _db()
        user_id = uuid.uuid4()
        reading_id = uuid.uuid4()

        written = await log_activity(
            db,
            user_id,
            "EMAIL_SENT",
            "alert",
            reading_id,
            detail={"type": "high_glucose", "recipients": 2},
        )

        entry = db.add.call_args[0][0]
        assert entry.user_id == user_id
        assert entry.action == "EMAIL_SENT"
        assert entry.resource == "alert"
        assert entry.resource_id == str(reading_id)
        assert json.loads(entry.detail) == {"type": "high_glucose", "recipients": 2}
        db.commit.assert_awaited_once()
        assert written is True

    @pytest.mark.asyncio
    async def test_without_commit_only_flushes(self):
        db = _db()

        await log_activity(db, None, "TRIGGER_WEEKLY_REPORT", "system", commit=False)

        entry = db.add.call_args[0][0]
        assert entry.user_id is None
        assert entry.resource_id is None
        assert entry.detail is None
        db.flush.assert_awaited_once()
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_never_raises(self):
        db = _db()
        db.commit.side_effect = RuntimeError("DB down")

        written = await log_activity(db, uuid.uuid4(), "CREATE", "reading")

        assert written is False
        db.rollback.assert_awaited_once()
