"""Planning inputs: jobs awaiting assignment, technician leave and working hours."""

from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import String, Boolean, Date, DateTime, ForeignKey, Integer, JSON, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from fieldops.models.base import Base, TimestampMixin, new_ulid

UNASSIGNED_JOB_STATUSES = ("unscheduled", "unassigned")
SCHEDULED_JOB_STATUS = "scheduled"
APPROVED_LEAVE = "approved"


class ServiceOrderJob(Base, TimestampMixin):
    __tablename__ = "service_order_jobs"

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=new_ulid)
    service_order_id: Mapped[str] = mapped_column(String(50), default="", index=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="unscheduled", index=True)
    priority: Mapped[str] = mapped_column(String(20), default="medium")
    work_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    estimated_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    required_skills: Mapped[list[str]] = mapped_column(JSON, default=list)
    assigned_technician_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    scheduled_start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    scheduled_end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    location: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # {address, lat, lng}
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)


class TechnicianLeave(Base, TimestampMixin):
    __tablename__ = "technician_leaves"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    technician_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    leave_type: Mapped[str] = mapped_column(String(50), default="vacation")
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending | approved | rejected
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class TechnicianWorkingHours(Base, TimestampMixin):
    __tablename__ = "technician_working_hours"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    technician_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)  # 0 = Sunday, 6 = Saturday
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
