"""Alerts router.

Alert configuration, alert history and acknowledgment, the test email,
and the admin-only weekly report controls.
"""

import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.core.auth import AdminUser, CurrentUser
from sugar_monitor.database import get_db
from sugar_monitor.dependencies import get_notifier, get_report_scheduler
from sugar_monitor.logging_config import get_logger
from sugar_monitor.models.alert_history import AlertType
from sugar_monitor.models.reading import ReadingContext
from sugar_monitor.schemas.alert import (
    AlertAcknowledgeResponse,
    AlertHistoryQuery,
    AlertHistoryResponse,
    EmailTestResponse,
    Pagination,
    SchedulerStatusResponse,
    UserReportFailureResponse,
    WeeklyReportTriggerResponse,
)
from sugar_monitor.schemas.alert_config import (
    AlertConfigInput,
    AlertConfigResponse,
    AlertConfigSavedResponse,
    AlertConfigToggleResponse,
)
from sugar_monitor.services.alert_config import (
    get_alert_config,
    save_alert_config,
    toggle_alert_config,
)
from sugar_monitor.services.alert_history import (
    acknowledge_alert,
    list_alert_history,
)
from sugar_monitor.services.audit_service import log_activity
from sugar_monitor.services.notification_templates import AlertNotification
from sugar_monitor.services.notifier import NotificationFailed, Notifier
from sugar_monitor.services.scheduler import ReportScheduler

logger = get_logger(__name__)

router = APIRouter(prefix="/api/alerts", tags=["alerts"])

# Value used for the sample HIGH alert sent by the test email endpoint
TEST_EMAIL_GLUCOSE = 200.0


@router.post("", response_model=AlertConfigSavedResponse)
async def upsert_alert_config(
    body: AlertConfigInput,
    response: Response,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> AlertConfigSavedResponse:
    """Create or replace the caller's alert configuration.

    Responds 201 for the first save and 200 for later ones. The caller's
    own email is always included as a destination.
    """
    try:
        config, created = await save_alert_config(current_user, body, db)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e

    if created:
        response.status_code = status.HTTP_201_CREATED

    return AlertConfigSavedResponse(
        message=(
            "Alert configuration created successfully"
            if created
            else "Alert configuration updated successfully"
        ),
        created=created,
        config=AlertConfigResponse.model_validate(config),
    )


@router.get("/config", response_model=AlertConfigResponse)
async def read_alert_config(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> AlertConfigResponse:
    config = await get_alert_config(current_user.id, db)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert configuration not found",
        )
    return AlertConfigResponse.model_validate(config)


@router.patch("/config/toggle", response_model=AlertConfigToggleResponse)
async def toggle_config(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> AlertConfigToggleResponse:
    """Enable or disable alerting without touching thresholds."""
    config = await toggle_alert_config(current_user.id, db)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert configuration not found",
        )
    state = "enabled" if config.enabled else "disabled"
    return AlertConfigToggleResponse(
        message=f"Alerts {state} successfully",
        enabled=config.enabled,
    )


@router.get("/history", response_model=AlertHistoryResponse)
async def alert_history(
    current_user: CurrentUser,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    alert_type: AlertType | None = Query(default=None),
    acknowledged: bool | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> AlertHistoryResponse:
    """The caller's alerts, newest first, with the triggering reading."""
    query = AlertHistoryQuery(
        limit=limit,
        offset=offset,
        alert_type=alert_type,
        acknowledged=acknowledged,
    )
    items, total = await list_alert_history(db, current_user.id, query)
    return AlertHistoryResponse(
        alerts=items,
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=total > offset + limit,
        ),
    )


@router.patch("/{alert_id}/acknowledge", response_model=AlertAcknowledgeResponse)
async def acknowledge(
    alert_id: uuid.UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> AlertAcknowledgeResponse:
    """Acknowledge one of the caller's alerts.

    Unknown, foreign, and already-acknowledged alerts all answer 404.
    """
    updated = await acknowledge_alert(db, current_user.id, alert_id)
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found or already acknowledged",
        )

    await log_activity(db, current_user.id, "ACKNOWLEDGE", "alert", alert_id)
    return AlertAcknowledgeResponse(
        message="Alert acknowledged successfully",
        alert_id=alert_id,
    )


@router.post("/test-email", response_model=EmailTestResponse)
async def send_test_email(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> EmailTestResponse:
    """Verify the mail transport and send a sample HIGH alert.

    Nothing is stored apart from the audit entries. Failures are audited
    as EMAIL_FAILED before answering 502.
    """
    config = await get_alert_config(current_user.id, db)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No alert configuration found",
        )
    if not config.email_addresses:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No notification emails configured",
        )

    audit_detail = {
        "kind": "test_email",
        "type": AlertType.HIGH_GLUCOSE.value,
        "glucose_level": TEST_EMAIL_GLUCOSE,
    }
    config_id = config.id

    check = await notifier.verify_connectivity()
    if isinstance(check, NotificationFailed):
        await log_activity(
            db,
            current_user.id,
            "EMAIL_FAILED",
            "alert_config",
            config_id,
            detail={**audit_detail, "stage": "verify", "error": check.error},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Email service connection failed. Please check SMTP configuration.",
        )

    payload = AlertNotification(
        patient_name=current_user.display_name,
        glucose_level=TEST_EMAIL_GLUCOSE,
        alert_type=AlertType.HIGH_GLUCOSE,
        timestamp=datetime.now(UTC),
        context=ReadingContext.OTHER,
        high_threshold=config.high_threshold,
        low_threshold=config.low_threshold,
    )
    result = await notifier.send_alert(config.notification_destinations, payload)
    if isinstance(result, NotificationFailed):
        await log_activity(
            db,
            current_user.id,
            "EMAIL_FAILED",
            "alert_config",
            config_id,
            detail={**audit_detail, "stage": "send", "error": result.error},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to send test email: {result.error}",
        )

    await log_activity(db, current_user.id, "TEST_EMAIL", "alert_config", config_id)
    return EmailTestResponse(
        message="Test email sent successfully",
        recipients=len(result.recipients),
    )


@router.post("/trigger-weekly-report", response_model=WeeklyReportTriggerResponse)
async def trigger_weekly_report(
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
    report_scheduler: ReportScheduler = Depends(get_report_scheduler),
) -> WeeklyReportTriggerResponse:
    """Run the weekly report now and return its summary (admin only)."""
    try:
        summary = await report_scheduler.trigger_weekly_report()
    except Exception as e:
        logger.exception("Failed to trigger weekly reports", user_id=str(admin.id))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to trigger weekly reports",
        ) from e

    await log_activity(
        db,
        admin.id,
        "TRIGGER_WEEKLY_REPORT",
        "system",
        detail={
            "eligible_users": summary.eligible_users,
            "sent": summary.sent,
            "failed": summary.failed,
        },
    )
    return WeeklyReportTriggerResponse(
        message="Weekly reports triggered successfully",
        eligible_users=summary.eligible_users,
        sent=summary.sent,
        skipped=summary.skipped,
        failed=summary.failed,
        failures=[
            UserReportFailureResponse(user_id=f.user_id, reason=f.reason or "")
            for f in summary.failures
        ],
    )


@router.get("/scheduler/status", response_model=SchedulerStatusResponse)
async def scheduler_status(
    admin: AdminUser,
    report_scheduler: ReportScheduler = Depends(get_report_scheduler),
) -> SchedulerStatusResponse:
    """Whether each background job is currently scheduled (admin only)."""
    return SchedulerStatusResponse(jobs=report_scheduler.get_jobs_status())
