from datetime import date, datetime, time, timezone

import pytest
from pydantic import ValidationError

from fieldops.errors import AssignmentConflict
from fieldops.models import DispatchStatus
from fieldops.schemas import (
    AssignJobRequest,
    BatchAssignRequest,
    Conflict,
    DispatchComplete,
    DispatchCreateFromJob,
    DispatchStatusUpdate,
    MaterialCreate,
    Page,
    TimeEntryCreate,
    ValidationResult,
)
from fieldops.schemas.common import clamp_page


def test_dispatch_create_valid():
    body = DispatchCreateFromJob(
        technician_ids=["7"], scheduled_date="2024-06-01",
        scheduled_start_time="09:00", scheduled_end_time="11:00", priority="high",
    )
    assert body.scheduled_date == date(2024, 6, 1)
    assert body.scheduled_start_time == time(9, 0)


def test_dispatch_create_rejects_inverted_window():
    with pytest.raises(ValidationError):
        DispatchCreateFromJob(
            technician_ids=["7"], scheduled_date="2024-06-01",
            scheduled_start_time="11:00", scheduled_end_time="09:00",
        )


def test_dispatch_create_requires_technicians():
    with pytest.raises(ValidationError):
        DispatchCreateFromJob(
            technician_ids=[], scheduled_date="2024-06-01",
            scheduled_start_time="09:00", scheduled_end_time="11:00",
        )


def test_status_update_rejects_unknown_status():
    assert DispatchStatusUpdate(status="in_progress").status is DispatchStatus.IN_PROGRESS
    with pytest.raises(ValidationError):
        DispatchStatusUpdate(status="paused")


def test_complete_percentage_bounds():
    assert DispatchComplete().completion_percentage == 100
    with pytest.raises(ValidationError):
        DispatchComplete(completion_percentage=101)


def test_time_entry_end_before_start():
    with pytest.raises(ValidationError):
        TimeEntryCreate(
            technician_id="7",
            start_time=datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc),
            end_time=datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc),
        )


def test_material_quantity_must_be_positive():
    with pytest.raises(ValidationError):
        MaterialCreate(article_id="A", quantity=0, used_by="7")


def test_assign_request_defaults():
    req = AssignJobRequest(
        job_id="JOB-1", technician_ids=["7"], scheduled_date="2024-06-01",
        scheduled_start_time="09:00", scheduled_end_time="11:00",
    )
    assert req.auto_create_dispatch is True
    assert req.priority == "medium"


def test_batch_requires_assignments():
    with pytest.raises(ValidationError):
        BatchAssignRequest(assignments=[])


def test_validation_result_add_flips_validity():
    result = ValidationResult()
    assert result.is_valid
    result.add(Conflict(type="on_leave", message="Technician 7 is on leave", technician_id="7"))
    assert not result.is_valid
    assert len(result.conflicts) == 1


def test_assignment_conflict_error_body():
    conflicts = [
        Conflict(type="invalid_technician_id", message="Invalid technician ID: x", technician_id="x"),
        Conflict(type="technician_not_found", message="Technician 99 not found or inactive"),
    ]
    error = AssignmentConflict(conflicts).to_error()
    assert error["code"] == "ASSIGNMENT_CONFLICT"
    assert error["message"].startswith("Assignment validation failed: Invalid technician ID: x")
    assert [c["type"] for c in error["conflicts"]] == ["invalid_technician_id", "technician_not_found"]


def test_page_build():
    page = Page[int].build([1, 2], page_number=1, page_size=2, total_items=5)
    assert page.total_pages == 3
    assert Page[int].build([], 1, 20, 0).total_pages == 0


def test_clamp_page():
    assert clamp_page(0, 500, 100) == (1, 100)
    assert clamp_page(3, 0, 100) == (3, 1)
