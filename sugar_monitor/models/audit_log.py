"""Audit log model."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from sugar_monitor.models.base import Base


class AuditLogEntry(Base):
    """Append-only trail of state-changing and security-relevant actions."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Verb, e.g. CREATE, DELETE, ALERT, EMAIL_SENT, EMAIL_FAILED
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Resource kind, e.g. reading, alert, alert_config, system
    resource: Mapped[str] = mapped_column(String(50), nullable=False)

    resource_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # JSON-encoded structured detail
    detail: Mapped[str | None] = mapped_column(Text(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLogEntry(action={self.action}, resource={self.resource}, "
            f"user_id={self.user_id})>"
        )
