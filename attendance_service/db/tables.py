"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in models/. Repos convert
between rows and dataclasses; nothing outside repos/ sees a row object.
"""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from attendance_service.db.engine import Base


class PeriodRow(Base):
    __tablename__ = "periods"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="active"
    )  # active|closing|closed

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_periods_date_order"),
    )


class ClassRow(Base):
    __tablename__ = "classes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    period_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("periods.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    modality: Mapped[str] = mapped_column(
        String(16), nullable=False
    )  # synchronous|self_paced
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="active"
    )  # active|closing|closed
    planned_sessions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    weekdays: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    class_time: Mapped[str] = mapped_column(String(32), nullable=False, default="")

    __table_args__ = (
        CheckConstraint(
            "planned_sessions IS NULL OR planned_sessions > 0",
            name="ck_classes_planned_sessions",
        ),
    )


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    class_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("classes.id"), nullable=False
    )
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    type: Mapped[str] = mapped_column(
        String(16), nullable=False, default="regular"
    )  # regular|exceptional
    enrollment_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    current_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="in_progress"
    )  # in_progress|approved|rejected
    status_updated_at: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (UniqueConstraint("class_id", "student_id"),)


class AttendanceEventRow(Base):
    __tablename__ = "attendance_events"

    class_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("classes.id"), primary_key=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    session_number: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("session_number >= 1", name="ck_attendance_session_number"),
    )


class AccessRecordRow(Base):
    __tablename__ = "access_records"

    class_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("classes.id"), primary_key=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    access_1: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    access_2: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    access_3: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
