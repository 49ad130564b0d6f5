from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, Field, model_validator

from fieldops.models.dispatch import DispatchStatus, Priority
from fieldops.schemas.dispatch_records import (
    AttachmentRead, ExpenseRead, MaterialRead, NoteRead, TimeEntryRead,
)


class DispatchCreateFromJob(BaseModel):
    technician_ids: list[str] = Field(min_length=1)
    scheduled_date: date
    scheduled_start_time: time
    scheduled_end_time: time
    priority: Priority = Priority.MEDIUM
    estimated_duration: int | None = Field(default=None, ge=0)  # minutes
    notes: str | None = None

    @model_validator(mode="after")
    def _window_is_ordered(self):
        if self.scheduled_end_time <= self.scheduled_start_time:
            raise ValueError("scheduled_end_time must be after scheduled_start_time")
        return self


class DispatchUpdate(BaseModel):
    technician_ids: list[str] | None = None  # replaces the whole set when given
    scheduled_date: date | None = None
    scheduled_start_time: time | None = None
    scheduled_end_time: time | None = None
    estimated_duration: int | None = Field(default=None, ge=0)
    priority: Priority | None = None
    notes: str | None = None


class DispatchStatusUpdate(BaseModel):
    status: DispatchStatus


class DispatchStart(BaseModel):
    actual_start_time: datetime | None = None  # defaults to now


class DispatchComplete(BaseModel):
    actual_end_time: datetime | None = None  # defaults to now
    completion_percentage: int = Field(default=100, ge=0, le=100)


class DispatchCancel(BaseModel):
    reason: str = ""


class DispatchTechnicianRead(BaseModel):
    technician_id: str
    name: str | None = None
    email: str | None = None
    assigned_at: datetime | None = None

    model_config = {"from_attributes": True}


class DispatchHistoryRead(BaseModel):
    action: str
    old_value: str | None = None
    new_value: str | None = None
    changed_by: str | None = None
    changed_at: datetime

    model_config = {"from_attributes": True}


class DispatchListItem(BaseModel):
    id: str
    dispatch_number: str
    job_id: str | None = None
    service_order_id: str | None = None
    status: DispatchStatus
    priority: Priority
    technicians: list[DispatchTechnicianRead] = []
    scheduled_date: date | None = None
    scheduled_start_time: time | None = None
    scheduled_end_time: time | None = None
    estimated_duration: int | None = None

    model_config = {"from_attributes": True}


class DispatchRead(DispatchListItem):
    required_skills: list[str] = []
    actual_start_time: datetime | None = None
    actual_end_time: datetime | None = None
    actual_duration: int | None = None
    completion_percentage: int = 0
    dispatched_by: str | None = None
    dispatched_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class DispatchDetail(DispatchRead):
    time_entries: list[TimeEntryRead] = []
    expenses: list[ExpenseRead] = []
    materials: list[MaterialRead] = []
    attachments: list[AttachmentRead] = []
    notes: list[NoteRead] = []
    history: list[DispatchHistoryRead] = []


class DispatchStatistics(BaseModel):
    total_dispatches: int = 0
    pending_dispatches: int = 0
    assigned_dispatches: int = 0
    in_progress_dispatches: int = 0
    completed_dispatches: int = 0
    cancelled_dispatches: int = 0
    completion_rate: float = 0.0  # percent of total
    average_duration: float = 0.0  # minutes, over dispatches with a recorded duration
    total_technicians: int = 0
    high_priority_count: int = 0
    medium_priority_count: int = 0
    low_priority_count: int = 0
    total_time_spent: int = 0  # minutes of logged time entries
    total_expenses: float = 0.0
    total_materials_cost: float = 0.0
    generated_at: datetime
