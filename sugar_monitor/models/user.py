"""User account model.

Accounts are created by the authentication service; this API only reads
them to resolve the JWT subject, the display name used in notifications,
and the role used for admin and provider checks.
"""

import enum
import uuid

from sqlalchemy import Enum, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sugar_monitor.models.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    """User roles.

    - PATIENT: Records readings and manages their own alert configuration
    - PROVIDER: Read access to linked patients
    - ADMIN: May trigger system jobs such as the weekly report
    """

    PATIENT = "patient"
    PROVIDER = "provider"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            name="userrole",
            create_type=False,  # Already created in migration
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=UserRole.PATIENT,
    )
    is_active: Mapped[bool] = mapped_column(
        default=True,
    )

    # Relationships
    readings = relationship(
        "Reading",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    alert_config = relationship(
        "AlertConfig",
        back_populates="user",
        cascade="all, delete-orphan",
        uselist=False,
    )
    alert_history = relationship(
        "AlertHistory",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"
