"""SQLAlchemy ORM models.

All tables share one ``Base``; import this package before ``create_all`` so
every mapper is registered.
"""

from fieldops.models.base import Base
from fieldops.models.user import User, ApiToken, TECHNICIAN_ROLE
from fieldops.models.dispatch import (
    Dispatch, DispatchTechnician, DispatchHistory, DispatchStatus, Priority,
    ALLOWED_TRANSITIONS,
)
from fieldops.models.dispatch_records import TimeEntry, Expense, MaterialUsage, Attachment, Note
from fieldops.models.planning import ServiceOrderJob, TechnicianLeave, TechnicianWorkingHours

__all__ = [
    "Base",
    # Users
    "User", "ApiToken", "TECHNICIAN_ROLE",
    # Dispatches
    "Dispatch", "DispatchTechnician", "DispatchHistory", "DispatchStatus", "Priority",
    "ALLOWED_TRANSITIONS",
    "TimeEntry", "Expense", "MaterialUsage", "Attachment", "Note",
    # Planning
    "ServiceOrderJob", "TechnicianLeave", "TechnicianWorkingHours",
]
