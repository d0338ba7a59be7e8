"""Create readings table.

Revision ID: 002_readings
Revises: 001_users
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "002_readings"
down_revision = "001_users"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(sa.text(
        "DO $$ BEGIN "
        "CREATE TYPE readingcontext AS ENUM "
        "('fasting', 'pre_meal', 'post_meal', 'exercise', 'other'); "
        "EXCEPTION WHEN duplicate_object THEN NULL; "
        "END $$"
    ))

    op.create_table(
        "readings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("glucose_level", sa.Float(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "context",
            postgresql.ENUM(name="readingcontext", create_type=False),
            nullable=False,
            server_default="other",
        ),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column(
            "medication_taken", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("carbs_consumed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "exercise_duration", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("stress_level", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "stress_level IS NULL OR stress_level BETWEEN 1 AND 10",
            name="ck_readings_stress_level",
        ),
    )
    op.create_index("ix_readings_user_id", "readings", ["user_id"])
    op.create_index("ix_readings_user_timestamp", "readings", ["user_id", "timestamp"])


def downgrade() -> None:
    op.drop_index("ix_readings_user_timestamp", table_name="readings")
    op.drop_index("ix_readings_user_id", table_name="readings")
    op.drop_table("readings")
    op.execute(sa.text("DROP TYPE IF EXISTS readingcontext"))
