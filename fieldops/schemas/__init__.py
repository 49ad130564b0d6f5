"""Pydantic request/response schemas."""

from fieldops.schemas.common import Page
from fieldops.schemas.dispatch import (
    DispatchCreateFromJob, DispatchUpdate, DispatchStatusUpdate, DispatchStart,
    DispatchComplete, DispatchCancel, DispatchListItem, DispatchRead, DispatchDetail,
    DispatchStatistics,
)
from fieldops.schemas.dispatch_records import (
    TimeEntryCreate, TimeEntryRead, ExpenseCreate, ExpenseRead,
    MaterialCreate, MaterialRead, NoteCreate, NoteRead, AttachmentRead, Approval,
)
from fieldops.schemas.planning import (
    ValidateAssignmentRequest, AssignJobRequest, BatchAssignRequest, BatchAssignResponse,
    BatchAssignResult, Conflict, ValidationResult, JobRead, AssignJobResponse,
    DispatchCreationWarning, TechnicianSchedule, TechnicianAvailability,
)

__all__ = [
    "Page",
    "DispatchCreateFromJob", "DispatchUpdate", "DispatchStatusUpdate", "DispatchStart",
    "DispatchComplete", "DispatchCancel", "DispatchListItem", "DispatchRead", "DispatchDetail",
    "DispatchStatistics",
    "TimeEntryCreate", "TimeEntryRead", "ExpenseCreate", "ExpenseRead",
    "MaterialCreate", "MaterialRead", "NoteCreate", "NoteRead", "AttachmentRead", "Approval",
    "ValidateAssignmentRequest", "AssignJobRequest", "BatchAssignRequest", "BatchAssignResponse",
    "BatchAssignResult", "Conflict", "ValidationResult", "JobRead", "AssignJobResponse",
    "DispatchCreationWarning", "TechnicianSchedule", "TechnicianAvailability",
]
