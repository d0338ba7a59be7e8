"""Tests for reading storage, statistics, and trends."""

import uuid
from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from sugar_monitor.core.errors import PersistenceError
from sugar_monitor.schemas.reading import ReadingCreate
from sugar_monitor.services.readings import (
    build_trends,
    create_reading,
    delete_reading,
    get_reading_stats,
    summarize_readings,
    trend_bucket,
)

MODULE = "sugar_monitor.services.readings"


def _db():
    db = AsyncMock()
    db.add = MagicMock()
    return db


def _body(**overrides):
    data = {
        "glucose_level": 142.0,
        "timestamp": datetime(2026, 3, 2, 8, 30, tzinfo=UTC),
        "context": "FASTING",
        "notes": "  before walk  ",
    }
    data.update(overrides)
    return ReadingCreate(**data)


class TestReadingCreate:
    def test_context_is_case_insensitive_and_notes_stripped(self):
        body = _body()

        assert body.context.value == "fasting"
        assert body.notes == "before walk"

    def test_blank_notes_become_none(self):
        assert _body(notes="   ").notes is None

    @pytest.mark.parametrize("level", [19.9, 800.1])
    def test_glucose_level_bounds(self, level):
        with pytest.raises(ValueError):
            _body(glucose_level=level)

    def test_naive_timestamp_rejected(self):
        with pytest.raises(ValueError, match="timezone"):
            _body(timestamp=datetime(2026, 3, 2, 8, 30))

    def test_offset_timestamp_kept(self):
        offset = timezone(timedelta(hours=-5))
        body = _body(timestamp=datetime(2026, 3, 2, 8, 30, tzinfo=offset))

        assert body.timestamp.utcoffset() == timedelta(hours=-5)


class TestCreateReading:
    @pytest.mark.asyncio
    async def test_commit_failure_raises_persistence_error(self):
        db = _db()
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("down"))

        with patch(f"{MODULE}.log_activity", AsyncMock()) as log_activity:
            with pytest.raises(PersistenceError):
                await create_reading(db, uuid.uuid4(), _body())

        db.rollback.assert_awaited_once()
        log_activity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stores_and_audits(self):
        db = _db()
        user_id = uuid.uuid4()

        with patch(f"{MODULE}.log_activity", AsyncMock(return_value=True)) as log_activity:
            reading = await create_reading(db, user_id, _body())

        db.add.assert_called_once_with(reading)
        assert reading.user_id == user_id
        assert reading.glucose_level == 142.0
        db.commit.assert_awaited_once()
        assert log_activity.await_args.args[2:4] == ("CREATE", "reading")
        db.refresh.assert_awaited_once_with(reading)

    @pytest.mark.asyncio
    async def test_failed_audit_reloads_reading(self):
        db = _db()

        with patch(f"{MODULE}.log_activity", AsyncMock(return_value=False)):
            reading = await create_reading(db, uuid.uuid4(), _body())

        assert db.refresh.await_count == 2
        assert db.refresh.await_args.args == (reading,)


class TestDeleteReading:
    @pytest.mark.asyncio
    async def test_missing_reading_returns_false(self):
        db = _db()
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        db.execute.return_value = result

        with patch(f"{MODULE}.delete_alerts_for_reading", AsyncMock()) as delete_alerts:
            assert await delete_reading(db, uuid.uuid4(), uuid.uuid4()) is False

        delete_alerts.assert_not_awaited()
        db.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deletes_alerts_then_reading(self):
        db = _db()
        reading = MagicMock()
        result = MagicMock()
        result.scalar_one_or_none.return_value = reading
        db.execute.return_value = result
        reading_id = uuid.uuid4()

        with (
            patch(
                f"{MODULE}.delete_alerts_for_reading", AsyncMock(return_value=2)
            ) as delete_alerts,
            patch(f"{MODULE}.log_activity", AsyncMock()) as log_activity,
        ):
            assert await delete_reading(db, uuid.uuid4(), reading_id) is True

        delete_alerts.assert_awaited_once_with(db, reading_id)
        db.delete.assert_awaited_once_with(reading)
        db.commit.assert_awaited_once()
        assert log_activity.await_args.args[2] == "DELETE"


class TestStats:
    def test_summary(self):
        stats = summarize_readings([65.0, 70.0, 180.0, 190.0], "week")

        assert stats.total_readings == 4
        assert stats.low_readings == 1
        assert stats.high_readings == 1
        assert stats.normal_readings == 2
        assert stats.time_in_range == 50.0
        assert stats.average_glucose == 126.25
        assert stats.min_glucose == 65.0
        assert stats.max_glucose == 190.0
        assert stats.period == "week"

    def test_empty(self):
        stats = summarize_readings([], "month")

        assert stats.total_readings == 0
        assert stats.average_glucose is None
        assert stats.min_glucose is None
        assert stats.time_in_range == 0.0

    @pytest.mark.asyncio
    async def test_period_sets_lower_bound(self):
        db = _db()
        scalars = MagicMock()
        scalars.all.return_value = [100.0]
        db.scalars.return_value = scalars
        now = datetime(2026, 3, 4, tzinfo=UTC)

        stats = await get_reading_stats(db, uuid.uuid4(), "quarter", now=now)

        assert stats.total_readings == 1
        statement = db.scalars.await_args.args[0]
        assert now - timedelta(days=90) in statement.compile().params.values()


class TestTrends:
    def test_bucket_labels(self):
        ts = datetime(2026, 3, 4, 10, 45, tzinfo=UTC)

        assert trend_bucket(ts, "hour") == "2026-03-04T10:00:00"
        assert trend_bucket(ts, "day") == "2026-03-04"
        assert trend_bucket(ts, "week") == "2026-W10"

    def test_week_label_uses_iso_year(self):
        assert trend_bucket(datetime(2027, 1, 1, tzinfo=UTC), "week") == "2026-W53"

    def test_bucket_uses_utc(self):
        pacific = timezone(timedelta(hours=-8))
        ts = datetime(2026, 3, 4, 20, 0, tzinfo=pacific)

        assert trend_bucket(ts, "day") == "2026-03-05"

        assert trend_bucket(shifted, "day") == "2026-03-05"

    def test_build_trends(self):
        rows = [
            (datetime(2026, 3, 3, 8, tzinfo=UTC), 100.0),
            (datetime(2026, 3, 3, 20, tzinfo=UTC), 201.0),
            (datetime(2026, 3, 4, 8, tzinfo=UTC), 90.0),
        ]

        trends = build_trends(rows, "day")

        assert [t.period for t in trends] == ["2026-03-03", "2026-03-04"]
        assert trends[0].avg_glucose == 150.5
        assert trends[0].min_glucose == 100.0
        assert trends[0].max_glucose == 201.0
        assert trends[0].reading_count == 2
        assert trends[1].reading_count == 1

    def test_build_trends_empty(self):
        assert build_trends([], "week") == []
