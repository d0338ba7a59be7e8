"""Weekly digest of unacknowledged alerts.

Users qualify when their alert configuration is enabled and they have at
least one unacknowledged alert from the last seven days. Each qualifying
user is processed in a fresh session and gets one digest sent to their
email destinations. A failure for one user is recorded in the run summary
and never stops the others.
"""

import enum
import uuid
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy import distinct, select
from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.logging_config import get_logger
from sugar_monitor.models.alert_config import AlertConfig
from sugar_monitor.models.alert_history import AlertHistory, AlertType
from sugar_monitor.models.reading import Reading
from sugar_monitor.models.user import User
from sugar_monitor.services.alert_config import get_alert_config
from sugar_monitor.services.audit_service import log_activity
from sugar_monitor.services.notification_templates import (
    DigestAlert,
    WeeklyDigest,
    WeeklyStats,
)
from sugar_monitor.services.notifier import NotificationFailed, Notifier

logger = get_logger(__name__)

ROLLING_WINDOW = timedelta(days=7)

# Python weekday numbering: 0=Monday ... 6=Sunday
SUNDAY = 6


@dataclass(frozen=True)
class ReportingWindows:
    """Rolling window for selecting alerts, calendar window for statistics."""

    rolling_start: datetime
    rolling_end: datetime
    week_start: datetime
    week_end: datetime


def start_of_week(moment: datetime, week_start_day: int = SUNDAY) -> datetime:
    """Midnight on the first day of the week containing ``moment``."""
    days_back = (moment.weekday() - week_start_day) % 7
    day = moment - timedelta(days=days_back)
    return day.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_week(moment: datetime, week_start_day: int = SUNDAY) -> datetime:
    """Last microsecond of the week containing ``moment``."""
    return (
        start_of_week(moment, week_start_day)
        + timedelta(days=7)
        - timedelta(microseconds=1)
    )


def reporting_windows(now: datetime, week_start_day: int = SUNDAY) -> ReportingWindows:
    """Compute both report windows for a run at ``now``.

    The rolling window is the last seven days. The calendar window starts at
    the beginning of the week containing ``now - 7d`` and ends at the end of
    the week containing ``now``, so it usually spans two calendar weeks.
    """
    rolling_start = now - ROLLING_WINDOW
    return ReportingWindows(
        rolling_start=rolling_start,
        rolling_end=now,
        week_start=start_of_week(rolling_start, week_start_day),
        week_end=end_of_week(now, week_start_day),
    )


def compute_weekly_stats(
    glucose_levels: Sequence[float],
    alert_types: Sequence[AlertType],
) -> WeeklyStats:
    """Summarize a week of readings and alerts.

    Average glucose and alert rate are 0 when there are no readings and are
    rounded to two decimals only at the end.
    """
    total_readings = len(glucose_levels)
    total_alerts = len(alert_types)

    if total_readings:
        average = sum(glucose_levels) / total_readings
        alert_rate = total_alerts / total_readings * 100
    else:
        average = 0.0
        alert_rate = 0.0

    return WeeklyStats(
        total_alerts=total_alerts,
        high_alerts=sum(1 for t in alert_types if t == AlertType.HIGH_GLUCOSE),
        low_alerts=sum(1 for t in alert_types if t == AlertType.LOW_GLUCOSE),
        average_glucose=round(average, 2),
        total_readings=total_readings,
        alert_rate=round(alert_rate, 2),
    )


class ReportStatus(str, enum.Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class UserReportOutcome:
    user_id: uuid.UUID
    status: ReportStatus
    reason: str | None = None


@dataclass
class WeeklyReportSummary:
    """Per-user outcomes of one weekly report run."""

    started_at: datetime
    outcomes: list[UserReportOutcome] = field(default_factory=list)

    @property
    def eligible_users(self) -> int:
        return len(self.outcomes)

    def _count(self, status: ReportStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def sent(self) -> int:
        return self._count(ReportStatus.SENT)

    @property
    def skipped(self) -> int:
        return self._count(ReportStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(ReportStatus.FAILED)

    @property
    def failures(self) -> list[UserReportOutcome]:
        return [o for o in self.outcomes if o.status == ReportStatus.FAILED]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class WeeklyReportService:
    """Builds and sends the weekly digests."""

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
        notifier: Notifier,
        clock: Callable[[], datetime] = _utcnow,
        week_start_day: int = SUNDAY,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock
        self.week_start_day = week_start_day

    async def run(self) -> WeeklyReportSummary:
        """Send a digest to every qualifying user.

        Errors while selecting users propagate. Errors for an individual
        user become a FAILED outcome.
        """
        now = self.clock()
        windows = reporting_windows(now, self.week_start_day)
        summary = WeeklyReportSummary(started_at=now)

        logger.info("Starting weekly alert report generation")

        async with self.session_factory() as db:
            user_ids = await self.eligible_user_ids(db, windows)

        logger.info(
            "Found users with unacknowledged alerts",
            user_count=len(user_ids),
        )

        for user_id in user_ids:
            try:
                async with self.session_factory() as user_db:
                    outcome = await self.report_for_user(user_db, user_id, windows)
            except Exception as e:
                logger.error(
                    "Weekly report failed for user",
                    user_id=str(user_id),
                    error=str(e),
                )
                outcome = UserReportOutcome(
                    user_id=user_id,
                    status=ReportStatus.FAILED,
                    reason=str(e) or type(e).__name__,
                )
            summary.outcomes.append(outcome)

        logger.info(
            "Weekly alert report generation completed",
            eligible_users=summary.eligible_users,
            sent=summary.sent,
            skipped=summary.skipped,
            failed=summary.failed,
        )
        return summary

    async def eligible_user_ids(
        self,
        db: AsyncSession,
        windows: ReportingWindows,
    ) -> list[uuid.UUID]:
        result = await db.execute(
            select(distinct(AlertHistory.user_id))
            .join(AlertConfig, AlertConfig.user_id == AlertHistory.user_id)
            .where(
                AlertConfig.enabled.is_(True),
                AlertHistory.acknowledged.is_(False),
                AlertHistory.created_at >= windows.rolling_start,
            )
        )
        return [row[0] for row in result.all()]

    async def report_for_user(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        windows: ReportingWindows,
    ) -> UserReportOutcome:
        """Reload everything for one user and send their digest.

        State is reloaded because alerts may have been acknowledged, or the
        configuration disabled, since the user was selected.
        """
        user = await db.get(User, user_id)
        if user is None:
            return UserReportOutcome(user_id, ReportStatus.SKIPPED, "user not found")

        config = await get_alert_config(user_id, db, enabled_only=True)
        if config is None:
            return UserReportOutcome(user_id, ReportStatus.SKIPPED, "alerts disabled")

        alerts = await self._unacknowledged_alerts(db, user_id, windows)
        if not alerts:
            return UserReportOutcome(
                user_id, ReportStatus.SKIPPED, "no unacknowledged alerts"
            )

        glucose_levels = (
            await db.scalars(
                select(Reading.glucose_level).where(
                    Reading.user_id == user_id,
                    Reading.timestamp >= windows.week_start,
                    Reading.timestamp <= windows.week_end,
                )
            )
        ).all()
        alert_types = (
            await db.scalars(
                select(AlertHistory.alert_type).where(
                    AlertHistory.user_id == user_id,
                    AlertHistory.created_at >= windows.week_start,
                    AlertHistory.created_at <= windows.week_end,
                )
            )
        ).all()

        digest = WeeklyDigest(
            patient_name=user.display_name,
            week_start=windows.week_start,
            week_end=windows.week_end,
            stats=compute_weekly_stats(glucose_levels, alert_types),
            high_threshold=config.high_threshold,
            low_threshold=config.low_threshold,
            generated_at=windows.rolling_end,
            alerts=alerts,
        )

        result = await self.notifier.send_weekly_digest(
            config.notification_destinations or [], digest
        )
        if isinstance(result, NotificationFailed):
            logger.warning(
                "Weekly report not delivered",
                user_id=str(user_id),
                error=result.error,
            )
            await log_activity(
                db,
                user_id,
                "EMAIL_FAILED",
                "weekly_report",
                detail={
                    "kind": "weekly_digest",
                    "alerts": len(alerts),
                    "error": result.error,
                },
            )
            return UserReportOutcome(user_id, ReportStatus.FAILED, result.error)

        logger.info(
            "Weekly report sent",
            user_id=str(user_id),
            alerts=len(alerts),
            recipients=len(result.recipients),
        )
        await log_activity(
            db,
            user_id,
            "EMAIL_SENT",
            "weekly_report",
            detail={
                "kind": "weekly_digest",
                "alerts": len(alerts),
                "recipients": len(result.recipients),
            },
        )
        return UserReportOutcome(user_id, ReportStatus.SENT)

    async def _unacknowledged_alerts(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        windows: ReportingWindows,
    ) -> list[DigestAlert]:
        result = await db.execute(
            select(
                AlertHistory.message,
                AlertHistory.alert_type,
                Reading.glucose_level,
                Reading.context,
                Reading.timestamp,
            )
            .join(Reading, Reading.id == AlertHistory.reading_id)
            .where(
                AlertHistory.user_id == user_id,
                AlertHistory.acknowledged.is_(False),
                AlertHistory.created_at >= windows.rolling_start,
            )
            .order_by(AlertHistory.created_at.desc())
        )
        return [
            DigestAlert(
                message=message,
                alert_type=alert_type,
                glucose_level=glucose_level,
                context=context,
                reading_timestamp=reading_timestamp,
            )
            for message, alert_type, glucose_level, context, reading_timestamp in result.all()
        ]
