# Business Logic Services
from sugar_monitor.services.alert_evaluation import (
    AlertEvaluation,
    build_alert_message,
    classify_glucose,
    evaluate_reading,
)
from sugar_monitor.services.notifier import (
    NotificationFailed,
    NotificationResult,
    NotificationSent,
    Notifier,
)
from sugar_monitor.services.scheduler import ReportScheduler
from sugar_monitor.services.weekly_report import (
    WeeklyReportService,
    WeeklyReportSummary,
)

__all__ = [
    "AlertEvaluation",
    "NotificationFailed",
    "NotificationResult",
    "NotificationSent",
    "Notifier",
    "ReportScheduler",
    "WeeklyReportService",
    "WeeklyReportSummary",
    "build_alert_message",
    "classify_glucose",
    "evaluate_reading",
]
