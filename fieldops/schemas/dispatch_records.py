from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class TimeEntryCreate(BaseModel):
    technician_id: str
    work_type: str = "work"  # work | travel | break
    start_time: datetime
    end_time: datetime
    description: str | None = None
    billable: bool = False
    hourly_rate: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class TimeEntryRead(BaseModel):
    id: str
    dispatch_id: str
    technician_id: str
    work_type: str
    start_time: datetime
    end_time: datetime
    duration: int
    description: str | None = None
    billable: bool
    hourly_rate: float | None = None
    total_cost: float | None = None
    status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ExpenseCreate(BaseModel):
    technician_id: str
    type: str  # travel | parking | meal | other
    amount: float = Field(ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    description: str | None = None
    date: datetime | None = None


class ExpenseRead(BaseModel):
    id: str
    dispatch_id: str
    technician_id: str
    type: str
    amount: float
    currency: str
    description: str | None = None
    date: datetime
    status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MaterialCreate(BaseModel):
    article_id: str
    quantity: int = Field(gt=0)
    used_by: str
    article_name: str | None = None
    sku: str | None = None
    unit_price: float = Field(default=0.0, ge=0)
    internal_comment: str | None = None


class MaterialRead(BaseModel):
    id: str
    dispatch_id: str
    article_id: str
    article_name: str | None = None
    sku: str | None = None
    quantity: int
    unit_price: float
    total_price: float
    used_by: str
    used_at: datetime
    status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NoteCreate(BaseModel):
    content: str = Field(min_length=1)
    category: str | None = None
    priority: str | None = None


class NoteRead(BaseModel):
    id: str
    dispatch_id: str
    content: str
    category: str | None = None
    priority: str | None = None
    created_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AttachmentRead(BaseModel):
    id: str
    dispatch_id: str
    file_name: str
    file_type: str
    file_size_mb: float
    category: str
    description: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    uploaded_by: str | None = None
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class Approval(BaseModel):
    approved_by: str | None = None  # defaults to the caller
