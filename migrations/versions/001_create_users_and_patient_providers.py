"""Create users and patient_providers tables.

Revision ID: 001_users
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_users"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Raw SQL so a re-run does not fail on an existing type (asyncpg has no checkfirst)
    op.execute(sa.text(
        "DO $$ BEGIN "
        "CREATE TYPE userrole AS ENUM ('patient', 'provider', 'admin'); "
        "EXCEPTION WHEN duplicate_object THEN NULL; "
        "END $$"
    ))

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column(
            "role",
            postgresql.ENUM(name="userrole", create_type=False),
            nullable=False,
            server_default="patient",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "patient_providers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "provider_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "relationship_type",
            sa.String(length=50),
            nullable=False,
            server_default="primary_care",
        ),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "patient_id", "provider_id", name="uq_patient_providers_pair"
        ),
    )
    op.create_index(
        "ix_patient_providers_patient_id", "patient_providers", ["patient_id"]
    )
    op.create_index(
        "ix_patient_providers_provider_id", "patient_providers", ["provider_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_patient_providers_provider_id", table_name="patient_providers")
    op.drop_index("ix_patient_providers_patient_id", table_name="patient_providers")
    op.drop_table("patient_providers")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.execute(sa.text("DROP TYPE IF EXISTS userrole"))
