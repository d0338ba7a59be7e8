"""Threshold evaluation for newly recorded readings.

A reading fires at most one alert: HIGH when it is at or above the user's
high threshold, otherwise LOW when it is at or below the low threshold.
A fired alert is stored first and only then handed to the notifier.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.core.errors import PersistenceError
from sugar_monitor.logging_config import get_logger
from sugar_monitor.models.alert_history import AlertHistory, AlertType
from sugar_monitor.models.reading import Reading
from sugar_monitor.models.user import User
from sugar_monitor.services.alert_config import get_alert_config
from sugar_monitor.services.alert_history import record_alert
from sugar_monitor.services.audit_service import log_activity
from sugar_monitor.services.notification_templates import (
    AlertNotification,
    format_glucose,
)
from sugar_monitor.services.notifier import (
    NotificationResult,
    NotificationSent,
    Notifier,
)

logger = get_logger(__name__)


@dataclass
class AlertEvaluation:
    """What happened when a reading was evaluated."""

    alert_type: AlertType | None = None
    alert: AlertHistory | None = None
    notification: NotificationResult | None = None

    @property
    def fired(self) -> bool:
        return self.alert_type is not None


def classify_glucose(
    value: float,
    high_threshold: float,
    low_threshold: float,
) -> AlertType | None:
    """Classify a glucose value against a pair of thresholds.

    HIGH is checked first, so it wins if the thresholds ever overlap.
    """
    if value >= high_threshold:
        return AlertType.HIGH_GLUCOSE
    if value <= low_threshold:
        return AlertType.LOW_GLUCOSE
    return None


def build_alert_message(alert_type: AlertType, value: float) -> str:
    prefix = "High" if alert_type == AlertType.HIGH_GLUCOSE else "Low"
    return f"{prefix} glucose reading: {format_glucose(value)} mg/dL"


async def evaluate_reading(
    db: AsyncSession,
    user: User,
    reading: Reading,
    notifier: Notifier,
    timeout: float | None = None,
) -> AlertEvaluation:
    """Evaluate a committed reading and fire an alert if it breaches a threshold.

    A missing or disabled configuration means no alerting. Storage and
    delivery failures are logged and audited, never raised, because the
    reading itself is already saved.

    A failed write rolls the session back and expires every instance in it,
    so only plain values copied up front are read after the first write.

    Args:
        db: Database session.
        user: Owner of the reading.
        reading: The stored reading.
        notifier: Delivers the alert email.
        timeout: Upper bound in seconds on the email send.
    """
    user_id = user.id
    patient_name = user.display_name
    reading_id = reading.id
    glucose_level = reading.glucose_level
    reading_timestamp = reading.timestamp
    reading_context = reading.context

    config = await get_alert_config(user_id, db, enabled_only=True)
    if config is None:
        logger.debug("Alerting not enabled for user", user_id=str(user_id))
        return AlertEvaluation()

    high_threshold = config.high_threshold
    low_threshold = config.low_threshold
    destinations = list(config.notification_destinations or [])

    alert_type = classify_glucose(glucose_level, high_threshold, low_threshold)
    if alert_type is None:
        return AlertEvaluation()

    evaluation = AlertEvaluation(alert_type=alert_type)
    message = build_alert_message(alert_type, glucose_level)
    detail = {
        "type": alert_type.value,
        "glucose_level": glucose_level,
        "reading_id": str(reading_id),
    }
    # Audit entries for the notification point at the alert when it exists
    audit_target = reading_id

    try:
        evaluation.alert = await record_alert(
            db, user_id, reading_id, alert_type, message
        )
    except PersistenceError as e:
        logger.error(
            "Failed to record glucose alert",
            user_id=str(user_id),
            reading_id=str(reading_id),
            alert_type=alert_type.value,
            error=str(e),
        )
        await log_activity(
            db,
            user_id,
            "ALERT_FAILED",
            "alert",
            reading_id,
            detail={**detail, "error": str(e)},
        )
    else:
        audit_target = evaluation.alert.id
        await log_activity(
            db,
            user_id,
            "ALERT",
            "alert",
            audit_target,
            detail={
                **detail,
                "threshold": (
                    high_threshold
                    if alert_type == AlertType.HIGH_GLUCOSE
                    else low_threshold
                ),
            },
        )

    if not destinations:
        logger.info(
            "No notification destinations configured",
            user_id=str(user_id),
        )
        return evaluation

    payload = AlertNotification(
        patient_name=patient_name,
        glucose_level=glucose_level,
        alert_type=alert_type,
        timestamp=reading_timestamp,
        context=reading_context,
        high_threshold=high_threshold,
        low_threshold=low_threshold,
    )
    result = await notifier.send_alert(destinations, payload, timeout=timeout)
    evaluation.notification = result

    if isinstance(result, NotificationSent):
        await log_activity(
            db,
            user_id,
            "EMAIL_SENT",
            "alert",
            audit_target,
            detail={**detail, "recipients": len(result.recipients)},
        )
    else:
        await log_activity(
            db,
            user_id,
            "EMAIL_FAILED",
            "alert",
            audit_target,
            detail={**detail, "error": result.error},
        )

    return evaluation
