"""Create alert_configs and alert_history tables.

Revision ID: 003_alerts
Revises: 002_readings
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "003_alerts"
down_revision = "002_readings"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(sa.text(
        "DO $$ BEGIN "
        "CREATE TYPE alerttype AS ENUM ('high_glucose', 'low_glucose'); "
        "EXCEPTION WHEN duplicate_object THEN NULL; "
        "END $$"
    ))

    op.create_table(
        "alert_configs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("high_threshold", sa.Float(), nullable=False, server_default="180"),
        sa.Column("low_threshold", sa.Float(), nullable=False, server_default="70"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column(
            "notification_destinations",
            sa.JSON(),
            nullable=False,
            server_default="[]",
        ),
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
        sa.CheckConstraint(
            "high_threshold > low_threshold",
            name="ck_alert_configs_threshold_order",
        ),
    )
    op.create_index("ix_alert_configs_user_id", "alert_configs", ["user_id"])

    op.create_table(
        "alert_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "reading_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("readings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "alert_type",
            postgresql.ENUM(name="alerttype", create_type=False),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("acknowledged", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )
    op.create_index("ix_alert_history_user_id", "alert_history", ["user_id"])
    op.create_index("ix_alert_history_reading_id", "alert_history", ["reading_id"])
    # Weekly report: unacknowledged alerts per user within a window
    op.create_index(
        "ix_alert_history_user_ack_created",
        "alert_history",
        ["user_id", "acknowledged", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_alert_history_user_ack_created", table_name="alert_history")
    op.drop_index("ix_alert_history_reading_id", table_name="alert_history")
    op.drop_index("ix_alert_history_user_id", table_name="alert_history")
    op.drop_table("alert_history")
    op.drop_index("ix_alert_configs_user_id", table_name="alert_configs")
    op.drop_table("alert_configs")
    op.execute(sa.text("DROP TYPE IF EXISTS alerttype"))
