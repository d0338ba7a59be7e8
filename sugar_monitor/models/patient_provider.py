"""Patient/provider link model.

Grants a healthcare provider read access to a patient's readings and alerts.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sugar_monitor.models.base import Base


class PatientProvider(Base):
    """Active or revoked link between a patient and a provider."""

    __tablename__ = "patient_providers"

    __table_args__ = (
        UniqueConstraint(
            "patient_id", "provider_id", name="uq_patient_providers_pair"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    provider_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # e.g. "primary_care", "endocrinologist"
    relationship_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="primary_care",
    )

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    patient = relationship("User", foreign_keys=[patient_id])
    provider = relationship("User", foreign_keys=[provider_id])

    def __repr__(self) -> str:
        return (
            f"<PatientProvider(patient={self.patient_id}, "
            f"provider={self.provider_id}, active={self.active})>"
        )
