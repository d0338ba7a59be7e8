"""Blood glucose reading model.

Readings are entered by the patient (meter or manual entry) together with
the circumstances of the measurement.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sugar_monitor.models.base import Base


class ReadingContext(str, enum.Enum):
    """When the reading was taken relative to meals and activity."""

    FASTING = "fasting"
    PRE_MEAL = "pre_meal"
    POST_MEAL = "post_meal"
    EXERCISE = "exercise"
    OTHER = "other"


CONTEXT_LABELS: dict[ReadingContext, str] = {
    ReadingContext.FASTING: "Fasting",
    ReadingContext.PRE_MEAL: "Before Meal",
    ReadingContext.POST_MEAL: "After Meal",
    ReadingContext.EXERCISE: "During Exercise",
    ReadingContext.OTHER: "Other",
}


def format_context(context: ReadingContext | str | None) -> str:
    """Human-readable label for a reading context."""
    if context is None:
        return CONTEXT_LABELS[ReadingContext.OTHER]
    try:
        return CONTEXT_LABELS[ReadingContext(context)]
    except ValueError:
        return str(context)


class Reading(Base):
    """A single glucose measurement belonging to one user."""

    __tablename__ = "readings"

    __table_args__ = (
        # Index for windowed queries (stats, weekly report)
        Index("ix_readings_user_timestamp", "user_id", "timestamp"),
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

    # Glucose value in mg/dL
    glucose_level: Mapped[float] = mapped_column(Float, nullable=False)

    # When the measurement was taken (client supplied)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    context: Mapped[ReadingContext] = mapped_column(
        Enum(
            ReadingContext,
            name="readingcontext",
            create_type=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=ReadingContext.OTHER,
    )

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Behavioral metadata
    medication_taken: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    carbs_consumed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    exercise_duration: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    stress_level: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    user = relationship("User", back_populates="readings")
    alerts = relationship(
        "AlertHistory",
        back_populates="reading",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Reading(user_id={self.user_id}, value={self.glucose_level}, "
            f"context={self.context.value}, timestamp={self.timestamp})>"
        )
