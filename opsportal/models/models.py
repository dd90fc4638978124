import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base
from ..services.time_rules import utcnow


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


# All timestamps are naive UTC.


class Employee(Base):
    """Directory entry; the core only reads it (role drives the clock-out reset)."""
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = uuid_pk()
    employee_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    role: Mapped[str] = mapped_column(String(50), default="OFFICE_STAFF", index=True)  # FIELD_ENGINEER|OFFICE_STAFF
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE", index=True)  # ACTIVE|INACTIVE
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    tasks = relationship("Task", back_populates="employee", order_by="Task.assigned_at.desc()")
    attendances = relationship("Attendance", back_populates="employee", foreign_keys="Attendance.employee_id")


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = uuid_pk()
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[Optional[str]] = mapped_column(String(100))
    location: Mapped[Optional[str]] = mapped_column(String(500))
    start_time: Mapped[Optional[str]] = mapped_column(String(5))  # local HH:MM
    end_time: Mapped[Optional[str]] = mapped_column(String(5))  # local HH:MM
    assigned_by: Mapped[str] = mapped_column(String(255), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)  # PENDING|IN_PROGRESS|COMPLETED|CANCELLED
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    employee = relationship("Employee", back_populates="tasks")

    __table_args__ = (
        Index("idx_tasks_employee_assigned", "employee_id", "assigned_at"),
    )


class Attendance(Base):
    """One row per employee per local calendar day."""
    __tablename__ = "attendance"

    id: Mapped[uuid.UUID] = uuid_pk()
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # UTC instant of the local midnight (see time_rules.get_date_at_midnight)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    clock_in: Mapped[Optional[datetime]] = mapped_column(DateTime)
    clock_out: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[str] = mapped_column(String(20), default="PRESENT", index=True)  # PRESENT|LATE|ABSENT|MARKDOWN
    location: Mapped[Optional[str]] = mapped_column(String(500))
    source: Mapped[Optional[str]] = mapped_column(String(20))  # ADMIN|EMPLOYEE|MANUAL

    attempt_count: Mapped[str] = mapped_column(String(10), default="ZERO")  # ZERO|ONE|TWO
    locked: Mapped[bool] = mapped_column(Boolean, default=False)
    locked_reason: Mapped[Optional[str]] = mapped_column(String(255))

    task_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="SET NULL"), index=True
    )
    task_start_time: Mapped[Optional[str]] = mapped_column(String(5))
    task_end_time: Mapped[Optional[str]] = mapped_column(String(5))
    task_location: Mapped[Optional[str]] = mapped_column(String(500))

    approval_status: Mapped[str] = mapped_column(String(20), default="PENDING")  # PENDING|APPROVED|REJECTED
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    employee = relationship("Employee", back_populates="attendances", foreign_keys=[employee_id])
    task = relationship("Task")

    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
    )


class CustomerIdConfig(Base):
    """Per-prefix counter used to mint customer ids."""
    __tablename__ = "customer_id_configs"

    id: Mapped[uuid.UUID] = uuid_pk()
    prefix: Mapped[str] = mapped_column(String(5), unique=True, nullable=False, index=True)
    next_sequence: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
