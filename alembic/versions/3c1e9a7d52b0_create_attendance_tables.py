"""create attendance tables

Revision ID: 3c1e9a7d52b0
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c1e9a7d52b0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "periods",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="active"
        ),
        sa.CheckConstraint("end_date >= start_date", name="ck_periods_date_order"),
    )
    op.create_table(
        "classes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "period_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("periods.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("modality", sa.String(length=16), nullable=False),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="active"
        ),
        sa.Column("planned_sessions", sa.Integer(), nullable=True),
        sa.Column(
            "weekdays",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "class_time", sa.String(length=32), nullable=False, server_default=""
        ),
        sa.CheckConstraint(
            "planned_sessions IS NULL OR planned_sessions > 0",
            name="ck_classes_planned_sessions",
        ),
    )
    op.create_index("ix_classes_period_id", "classes", ["period_id"])
    op.create_table(
        "enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "class_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("classes.id"),
            nullable=False,
        ),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "type", sa.String(length=16), nullable=False, server_default="regular"
        ),
        sa.Column("enrollment_date", sa.Date(), nullable=False),
        sa.Column(
            "current_status",
            sa.String(length=16),
            nullable=False,
            server_default="in_progress",
        ),
        sa.Column("status_updated_at", sa.Integer(), nullable=True),
        sa.UniqueConstraint("class_id", "student_id"),
    )
    op.create_table(
        "attendance_events",
        sa.Column(
            "class_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("classes.id"),
            primary_key=True,
        ),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("session_number", sa.Integer(), primary_key=True),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("present", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint("session_number >= 1", name="ck_attendance_session_number"),
    )
    op.create_table(
        "access_records",
        sa.Column(
            "class_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("classes.id"),
            primary_key=True,
        ),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("access_1", sa.Date(), nullable=True),
        sa.Column("access_2", sa.Date(), nullable=True),
        sa.Column("access_3", sa.Date(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("access_records")
    op.drop_table("attendance_events")
    op.drop_table("enrollments")
    op.drop_index("ix_classes_period_id", table_name="classes")
    op.drop_table("classes")
    op.drop_table("periods")
