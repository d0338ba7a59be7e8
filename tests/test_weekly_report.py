"""Tests for the weekly alert report."""

import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sugar_monitor.models.alert_history import AlertType
from sugar_monitor.models.reading import ReadingContext
from sugar_monitor.services.notification_templates import DigestAlert
from sugar_monitor.services.notifier import NotificationFailed, NotificationSent
from sugar_monitor.services.weekly_report import (
    ReportStatus,
    UserReportOutcome,
    WeeklyReportService,
    compute_weekly_stats,
    end_of_week,
    reporting_windows,
    start_of_week,
)

MODULE = "sugar_monitor.services.weekly_report"

# A Wednesday
NOW = datetime(2026, 3, 4, 10, 0, tzinfo=UTC)


def _session_factory(db=None):
    @asynccontextmanager
    async def _session():
        yield db if db is not None else AsyncMock()

    return MagicMock(side_effect=_session)


def _service(notifier=None, session_factory=None):
    return WeeklyReportService(
        session_factory or _session_factory(),
        notifier or AsyncMock(),
        clock=lambda: NOW,
    )


def _digest_alert():
    return DigestAlert(
        message="High glucose reading: 250 mg/dL",
        alert_type=AlertType.HIGH_GLUCOSE,
        glucose_level=250.0,
        context=ReadingContext.POST_MEAL,
        reading_timestamp=datetime(2026, 3, 1, 13, tzinfo=UTC),
    )


def _scalars(values):
    result = MagicMock()
    result.all.return_value = values
    return result


class TestReportingWindows:
    def test_sunday_week_start(self):
        windows = reporting_windows(NOW)

        assert windows.rolling_start == datetime(2026, 2, 25, 10, 0, tzinfo=UTC)
        assert windows.rolling_end == NOW
        assert windows.week_start == datetime(2026, 2, 22, tzinfo=UTC)
        assert windows.week_end == datetime(2026, 3, 7, 23, 59, 59, 999999, tzinfo=UTC)

    def test_monday_week_start(self):
        windows = reporting_windows(NOW, week_start_day=0)

        assert windows.week_start == datetime(2026, 2, 23, tzinfo=UTC)
        assert windows.week_end == datetime(2026, 3, 8, 23, 59, 59, 999999, tzinfo=UTC)

    def test_start_of_week_on_first_day_is_same_day(self):
        sunday_noon = datetime(2026, 3, 8, 12, 0, tzinfo=UTC)

        assert start_of_week(sunday_noon) == datetime(2026, 3, 8, tzinfo=UTC)
        assert end_of_week(sunday_noon) == datetime(
            2026, 3, 14, 23, 59, 59, 999999, tzinfo=UTC
        )

    def test_calendar_window_contains_rolling_window(self):
        windows = reporting_windows(NOW)

        assert windows.week_start <= windows.rolling_start
        assert windows.week_end >= windows.rolling_end


class TestComputeWeeklyStats:
    def test_counts_and_rounding(self):
        stats = compute_weekly_stats(
            [100.0, 150.0, 201.0],
            [AlertType.HIGH_GLUCOSE, AlertType.HIGH_GLUCOSE, AlertType.LOW_GLUCOSE],
        )

        assert stats.total_readings == 3
        assert stats.total_alerts == 3
        assert stats.high_alerts == 2
        assert stats.low_alerts == 1
        assert stats.average_glucose == 150.33
        assert stats.alert_rate == 100.0

    def test_alert_rate_rounded_to_two_decimals(self):
        stats = compute_weekly_stats([100.0] * 3, [AlertType.LOW_GLUCOSE])

        assert stats.alert_rate == 33.33

    def test_no_readings_gives_zero_average_and_rate(self):
        stats = compute_weekly_stats([], [AlertType.HIGH_GLUCOSE])

        assert stats.total_readings == 0
        assert stats.average_glucose == 0
        assert stats.alert_rate == 0


class TestRun:
    @pytest.mark.asyncio
    async def test_one_failing_user_does_not_stop_others(self):
        users = [uuid.uuid4(), uuid.uuid4(), uuid.uuid4()]
        sessions = _session_factory()
        service = _service(session_factory=sessions)

        async def report(db, user_id, windows):
            if user_id == users[1]:
                raise RuntimeError("connection reset")
            return UserReportOutcome(user_id, ReportStatus.SENT)

        with (
            patch.object(service, "eligible_user_ids", AsyncMock(return_value=users)),
            patch.object(service, "report_for_user", side_effect=report),
        ):
            summary = await service.run()

        assert summary.eligible_users == 3
        assert summary.sent == 2
        assert summary.failed == 1
        assert summary.failures[0].user_id == users[1]
        assert summary.failures[0].reason == "connection reset"
        # One session for selection plus one per user
        assert sessions.call_count == 4

    @pytest.mark.asyncio
    async def test_no_eligible_users(self):
        service = _service()

        with patch.object(service, "eligible_user_ids", AsyncMock(return_value=[])):
            summary = await service.run()

        assert summary.eligible_users == 0
        assert summary.failures == []
        assert summary.started_at == NOW

    @pytest.mark.asyncio
    async def test_selection_error_propagates(self):
        service = _service()

        with patch.object(
            service,
            "eligible_user_ids",
            AsyncMock(side_effect=RuntimeError("database down")),
        ):
            with pytest.raises(RuntimeError, match="database down"):
                await service.run()


class TestReportForUser:
    def _user(self):
        user = MagicMock()
        user.id = uuid.uuid4()
        user.display_name = "Pat Jones"
        return user

    def _config(self):
        config = MagicMock()
        config.high_threshold = 180.0
        config.low_threshold = 70.0
        config.notification_destinations = [
            {"kind": "email", "address": "pat@example.com"}
        ]
        return config

    @pytest.mark.asyncio
    async def test_sends_digest(self):
        user = self._user()
        db = AsyncMock()
        db.get.return_value = user
        db.scalars.side_effect = [
            _scalars([120.0, 250.0]),
            _scalars([AlertType.HIGH_GLUCOSE]),
        ]
        notifier = AsyncMock()
        notifier.send_weekly_digest.return_value = NotificationSent(
            recipients=("pat@example.com",)
        )
        service = _service(notifier=notifier)

        with (
            patch(f"{MODULE}.get_alert_config", AsyncMock(return_value=self._config())),
            patch.object(
                service,
                "_unacknowledged_alerts",
                AsyncMock(return_value=[_digest_alert()]),
            ),
            patch(f"{MODULE}.log_activity", AsyncMock()) as audit,
        ):
            outcome = await service.report_for_user(
                db, user.id, reporting_windows(NOW)
            )

        assert outcome.status == ReportStatus.SENT
        destinations, digest = notifier.send_weekly_digest.await_args.args
        assert destinations == [{"kind": "email", "address": "pat@example.com"}]
        assert digest.patient_name == "Pat Jones"
        assert digest.stats.total_readings == 2
        assert digest.stats.average_glucose == 185.0
        assert digest.stats.alert_rate == 50.0
        assert len(digest.alerts) == 1
        assert audit.await_args.args[2:4] == ("EMAIL_SENT", "weekly_report")
        assert audit.await_args.kwargs["detail"] == {
            "kind": "weekly_digest",
            "alerts": 1,
            "recipients": 1,
        }

    @pytest.mark.asyncio
    async def test_skips_when_alerts_acknowledged_since_selection(self):
        user = self._user()
        db = AsyncMock()
        db.get.return_value = user
        notifier = AsyncMock()
        service = _service(notifier=notifier)

        with (
            patch(f"{MODULE}.get_alert_config", AsyncMock(return_value=self._config())),
            patch.object(service, "_unacknowledged_alerts", AsyncMock(return_value=[])),
        ):
            outcome = await service.report_for_user(
                db, user.id, reporting_windows(NOW)
            )

        assert outcome.status == ReportStatus.SKIPPED
        assert outcome.reason == "no unacknowledged alerts"
        notifier.send_weekly_digest.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_skips_when_config_disabled(self):
        db = AsyncMock()
        db.get.return_value = self._user()
        service = _service()

        with patch(f"{MODULE}.get_alert_config", AsyncMock(return_value=None)):
            outcome = await service.report_for_user(
                db, uuid.uuid4(), reporting_windows(NOW)
            )

        assert outcome.status == ReportStatus.SKIPPED
        assert outcome.reason == "alerts disabled"

    @pytest.mark.asyncio
    async def test_skips_missing_user(self):
        db = AsyncMock()
        db.get.return_value = None

        outcome = await _service().report_for_user(
            db, uuid.uuid4(), reporting_windows(NOW)
        )

        assert outcome.status == ReportStatus.SKIPPED
        assert outcome.reason == "user not found"

    @pytest.mark.asyncio
    async def test_delivery_failure_is_failed_and_audited(self):
        user = self._user()
        db = AsyncMock()
        db.get.return_value = user
        db.scalars.side_effect = [_scalars([]), _scalars([])]
        notifier = AsyncMock()
        notifier.send_weekly_digest.return_value = NotificationFailed(
            error="SMTP send failed"
        )
        service = _service(notifier=notifier)

        with (
            patch(f"{MODULE}.get_alert_config", AsyncMock(return_value=self._config())),
            patch.object(
                service,
                "_unacknowledged_alerts",
                AsyncMock(return_value=[_digest_alert()]),
            ),
            patch(f"{MODULE}.log_activity", AsyncMock()) as audit,
        ):
            outcome = await service.report_for_user(
                db, user.id, reporting_windows(NOW)
            )

        assert outcome.status == ReportStatus.FAILED
        assert outcome.reason == "SMTP send failed"
        db_arg, user_id, action, resource = audit.await_args.args
        assert db_arg is db
        assert user_id == user.id
        assert (action, resource) == ("EMAIL_FAILED", "weekly_report")
        assert audit.await_args.kwargs["detail"] == {
            "kind": "weekly_digest",
            "alerts": 1,
            "error": "SMTP send failed",
        }
