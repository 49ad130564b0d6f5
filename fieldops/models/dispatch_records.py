"""Cost, effort and documentation records attached to a dispatch."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from fieldops.models.base import Base, ULIDMixin, utcnow

PENDING = "pending"
APPROVED = "approved"


class ApprovableMixin:
    """pending -> approved, set once by an approver."""

    status: Mapped[str] = mapped_column(String(20), default=PENDING)
    approved_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class TimeEntry(Base, ULIDMixin, ApprovableMixin):
    __tablename__ = "dispatch_time_entries"

    dispatch_id: Mapped[str] = mapped_column(String(26), ForeignKey("dispatches.id"), index=True)
    technician_id: Mapped[str] = mapped_column(String(50))
    work_type: Mapped[str] = mapped_column(String(30), default="work")  # work | travel | break
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    duration: Mapped[int] = mapped_column(Integer, default=0)  # minutes
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    billable: Mapped[bool] = mapped_column(Boolean, default=False)
    hourly_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_cost: Mapped[float | None] = mapped_column(Float, nullable=True)


class Expense(Base, ULIDMixin, ApprovableMixin):
    __tablename__ = "dispatch_expenses"

    dispatch_id: Mapped[str] = mapped_column(String(26), ForeignKey("dispatches.id"), index=True)
    technician_id: Mapped[str] = mapped_column(String(50))
    type: Mapped[str] = mapped_column(String(50))
    amount: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class MaterialUsage(Base, ULIDMixin, ApprovableMixin):
    __tablename__ = "dispatch_materials"

    dispatch_id: Mapped[str] = mapped_column(String(26), ForeignKey("dispatches.id"), index=True)
    article_id: Mapped[str] = mapped_column(String(50))
    article_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0)
    total_price: Mapped[float] = mapped_column(Float, default=0.0)
    used_by: Mapped[str] = mapped_column(String(50))
    used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    internal_comment: Mapped[str | None] = mapped_column(Text, nullable=True)


class Attachment(Base, ULIDMixin):
    __tablename__ = "dispatch_attachments"

    dispatch_id: Mapped[str] = mapped_column(String(26), ForeignKey("dispatches.id"), index=True)
    file_name: Mapped[str] = mapped_column(String(255))
    file_type: Mapped[str] = mapped_column(String(100), default="application/octet-stream")
    file_size_mb: Mapped[float] = mapped_column(Float, default=0.0)
    category: Mapped[str] = mapped_column(String(50), default="")  # photo | document | signature
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    storage_path: Mapped[str | None] = mapped_column(String(500), nullable=True)


class Note(Base, ULIDMixin):
    __tablename__ = "dispatch_notes"

    dispatch_id: Mapped[str] = mapped_column(String(26), ForeignKey("dispatches.id"), index=True)
    content: Mapped[str] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    priority: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
