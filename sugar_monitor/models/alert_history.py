"""Alert history model.

One row per threshold breach. The row is written before any notification
is attempted and afterwards only its acknowledgment changes.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sugar_monitor.models.base import Base


class AlertType(str, enum.Enum):
    """Kind of threshold breach."""

    HIGH_GLUCOSE = "high_glucose"
    LOW_GLUCOSE = "low_glucose"


class AlertHistory(Base):
    """A fired glucose alert linked to the reading that triggered it."""

    __tablename__ = "alert_history"

    __table_args__ = (
        # Weekly report: unacknowledged alerts per user within a window
        Index(
            "ix_alert_history_user_ack_created",
            "user_id",
            "acknowledged",
            "created_at",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    reading_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("readings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    alert_type: Mapped[AlertType] = mapped_column(
        Enum(
            AlertType,
            name="alerttype",
            create_type=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    # Human-readable alert message
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Acknowledgment tracking
    acknowledged: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    acknowledged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    user = relationship("User", back_populates="alert_history")
    reading = relationship("Reading", back_populates="alerts")

    def __repr__(self) -> str:
        return (
            f"<AlertHistory(type={self.alert_type.value}, "
            f"reading_id={self.reading_id}, acknowledged={self.acknowledged})>"
        )
