"""Dispatch model: a scheduled, trackable unit of field-service work.

Status is a closed enum and its legal moves live in ``ALLOWED_TRANSITIONS``.
"""

from __future__ import annotations

import enum
from datetime import date, datetime, time

from sqlalchemy import (
    String, Boolean, Date, DateTime, Enum, ForeignKey, Integer, JSON, Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldops.models.base import Base, ULIDMixin, utcnow


class DispatchStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


ALLOWED_TRANSITIONS: dict[DispatchStatus, frozenset[DispatchStatus]] = {
    DispatchStatus.PENDING: frozenset({DispatchStatus.ASSIGNED, DispatchStatus.CANCELLED}),
    DispatchStatus.ASSIGNED: frozenset({DispatchStatus.IN_PROGRESS, DispatchStatus.CANCELLED}),
    DispatchStatus.IN_PROGRESS: frozenset({DispatchStatus.COMPLETED, DispatchStatus.CANCELLED}),
    DispatchStatus.COMPLETED: frozenset(),
    DispatchStatus.CANCELLED: frozenset(),
}

# Dispatches in these states no longer occupy a technician's calendar.
INACTIVE_STATUSES = (DispatchStatus.COMPLETED, DispatchStatus.CANCELLED)

# Soft delete is only allowed before work has started or once abandoned.
DELETABLE_STATUSES = (DispatchStatus.PENDING, DispatchStatus.CANCELLED)


def can_transition(current: DispatchStatus, requested: DispatchStatus) -> bool:
    return requested == current or requested in ALLOWED_TRANSITIONS[current]


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Dispatch(Base, ULIDMixin):
    __tablename__ = "dispatches"

    dispatch_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    job_id: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    service_order_id: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    status: Mapped[DispatchStatus] = mapped_column(
        Enum(DispatchStatus, native_enum=False, length=20, values_callable=_enum_values),
        default=DispatchStatus.PENDING,
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority, native_enum=False, length=20, values_callable=_enum_values),
        default=Priority.MEDIUM,
    )
    required_skills: Mapped[list[str]] = mapped_column(JSON, default=list)

    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    scheduled_start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    scheduled_end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    estimated_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    actual_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    completion_percentage: Mapped[int] = mapped_column(Integer, default=0)

    dispatched_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    technicians = relationship(
        "DispatchTechnician", back_populates="dispatch",
        cascade="all, delete-orphan", lazy="selectin",
    )
    time_entries = relationship("TimeEntry", cascade="all, delete-orphan", lazy="selectin")
    expenses = relationship("Expense", cascade="all, delete-orphan", lazy="selectin")
    materials = relationship("MaterialUsage", cascade="all, delete-orphan", lazy="selectin")
    attachments = relationship("Attachment", cascade="all, delete-orphan", lazy="selectin")
    notes = relationship("Note", cascade="all, delete-orphan", lazy="selectin")
    history = relationship(
        "DispatchHistory", cascade="all, delete-orphan", lazy="selectin",
        order_by="DispatchHistory.changed_at",
    )

    @property
    def technician_ids(self) -> list[str]:
        return [t.technician_id for t in self.technicians]


class DispatchTechnician(Base):
    __tablename__ = "dispatch_technicians"

    dispatch_id: Mapped[str] = mapped_column(String(26), ForeignKey("dispatches.id"), primary_key=True)
    technician_id: Mapped[str] = mapped_column(String(50), primary_key=True, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    dispatch = relationship("Dispatch", back_populates="technicians")


class DispatchHistory(Base, ULIDMixin):
    __tablename__ = "dispatch_history"

    dispatch_id: Mapped[str] = mapped_column(String(26), ForeignKey("dispatches.id"), index=True)
    action: Mapped[str] = mapped_column(String(50))  # created | status_changed | updated | deleted
    old_value: Mapped[str | None] = mapped_column(String(100), nullable=True)
    new_value: Mapped[str | None] = mapped_column(String(100), nullable=True)
    changed_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
