# Database Models
from sugar_monitor.models.alert_config import AlertConfig
from sugar_monitor.models.alert_history import AlertHistory, AlertType
from sugar_monitor.models.audit_log import AuditLogEntry
from sugar_monitor.models.base import Base, TimestampMixin
from sugar_monitor.models.patient_provider import PatientProvider
from sugar_monitor.models.reading import Reading, ReadingContext, format_context
from sugar_monitor.models.user import User, UserRole

__all__ = [
    "AlertConfig",
    "AlertHistory",
    "AlertType",
    "AuditLogEntry",
    "Base",
    "PatientProvider",
    "Reading",
    "ReadingContext",
    "TimestampMixin",
    "User",
    "UserRole",
    "format_context",
]
