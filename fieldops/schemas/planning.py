from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, Field, model_validator

from fieldops.models.dispatch import Priority
from fieldops.schemas.dispatch import DispatchRead


class _Window(BaseModel):
    scheduled_date: date
    scheduled_start_time: time
    scheduled_end_time: time

    @model_validator(mode="after")
    def _window_is_ordered(self):
        if self.scheduled_end_time <= self.scheduled_start_time:
            raise ValueError("scheduled_end_time must be after scheduled_start_time")
        return self


class ValidateAssignmentRequest(_Window):
    job_id: str
    technician_ids: list[str] = Field(min_length=1)


class AssignJobRequest(ValidateAssignmentRequest):
    priority: Priority = Priority.MEDIUM
    notes: str | None = None
    auto_create_dispatch: bool = True


class BatchAssignRequest(BaseModel):
    assignments: list[AssignJobRequest] = Field(min_length=1)
    auto_create_dispatches: bool = True


class Conflict(BaseModel):
    type: str  # job_not_found | invalid_technician_id | technician_not_found | on_leave | time_conflict
    message: str
    technician_id: str | None = None
    conflicting_data: dict[str, Any] | None = None


class ValidationResult(BaseModel):
    is_valid: bool = True
    conflicts: list[Conflict] = []
    warnings: list[str] = []

    def add(self, conflict: Conflict) -> None:
        self.conflicts.append(conflict)
        self.is_valid = False


class JobRead(BaseModel):
    id: str
    service_order_id: str
    title: str
    description: str | None = None
    status: str
    priority: str
    estimated_duration: int | None = None
    required_skills: list[str] = []
    assigned_technician_ids: list[str] = []
    scheduled_date: date | None = None
    scheduled_start_time: time | None = None
    scheduled_end_time: time | None = None
    location: dict[str, Any] | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DispatchCreationWarning(BaseModel):
    """The job was assigned but its dispatch could not be created."""

    job_id: str
    message: str


class AssignJobResponse(BaseModel):
    job: JobRead
    dispatch: DispatchRead | None = None
    warning: DispatchCreationWarning | None = None


class BatchAssignResult(BaseModel):
    job_id: str
    status: str  # success | failed
    dispatch_id: str | None = None
    error_message: str | None = None
    warning: str | None = None


class BatchAssignResponse(BaseModel):
    successful: int = 0
    failed: int = 0
    results: list[BatchAssignResult] = []


class WorkingHoursRead(BaseModel):
    start: str
    end: str


class ScheduledDispatch(BaseModel):
    id: str
    dispatch_number: str
    job_id: str | None = None
    service_order_id: str | None = None
    scheduled_date: date | None = None
    scheduled_start_time: time | None = None
    scheduled_end_time: time | None = None
    estimated_duration: int | None = None
    status: str
    priority: str


class LeaveRead(BaseModel):
    id: int
    leave_type: str
    start_date: date
    end_date: date
    status: str

    model_config = {"from_attributes": True}


class TechnicianSchedule(BaseModel):
    technician_id: str
    technician_name: str
    working_hours: dict[str, WorkingHoursRead | None]
    dispatches: list[ScheduledDispatch] = []
    leaves: list[LeaveRead] = []
    total_scheduled_hours: float = 0.0
    available_hours: float = 0.0


class TechnicianAvailability(BaseModel):
    id: str
    name: str
    email: str
    skills: list[str] = []
    status: str
    is_available: bool
    available_minutes: int
    scheduled_minutes: int
    utilization_percentage: float
