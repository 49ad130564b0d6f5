from datetime import date, datetime, time, timezone

import pytest

from fieldops.errors import InvalidState, InvalidTransition, NotFound, ValidationError
from fieldops.models import ALLOWED_TRANSITIONS, DispatchStatus, Priority
from fieldops.models.dispatch import can_transition
from fieldops.schemas import DispatchUpdate, ExpenseCreate, MaterialCreate, NoteCreate, TimeEntryCreate
from fieldops.services.dispatches import DispatchService, summarize


def _service(db):
    return DispatchService(db)


async def _create(db, technician_ids=("7",), job_id="JOB-1", **overrides):
    schedule = {
        "technician_ids": list(technician_ids),
        "scheduled_date": date(2024, 6, 1),
        "start_time": time(9, 0),
        "end_time": time(11, 0),
        "priority": Priority.HIGH,
    }
    schedule.update(overrides)
    return await _service(db).create_from_job(job_id, actor="1", **schedule)


# ── Transition table ─────────────────────────────────────

def test_transition_table_covers_every_status():
    assert set(ALLOWED_TRANSITIONS) == set(DispatchStatus)
    assert ALLOWED_TRANSITIONS[DispatchStatus.COMPLETED] == frozenset()
    assert ALLOWED_TRANSITIONS[DispatchStatus.CANCELLED] == frozenset()


def test_can_transition():
    assert can_transition(DispatchStatus.PENDING, DispatchStatus.ASSIGNED)
    assert can_transition(DispatchStatus.PENDING, DispatchStatus.PENDING)
    assert not can_transition(DispatchStatus.PENDING, DispatchStatus.COMPLETED)
    assert not can_transition(DispatchStatus.COMPLETED, DispatchStatus.IN_PROGRESS)


# ── Creation ─────────────────────────────────────────────

async def test_create_from_job(db, technician, job):
    dispatch = await _create(db)

    assert dispatch.status is DispatchStatus.PENDING
    assert dispatch.priority is Priority.HIGH
    assert dispatch.dispatch_number.startswith("DISP-")
    assert dispatch.job_id == "JOB-1"
    assert dispatch.service_order_id == "SO-100"
    assert dispatch.required_skills == ["hvac"]
    assert dispatch.estimated_duration == 120
    assert dispatch.dispatched_by == "1"
    assert dispatch.technician_ids == ["7"]
    assert dispatch.technicians[0].name == "Ada Lovelace"
    assert dispatch.technicians[0].email == "ada@example.com"
    assert [h.action for h in dispatch.history] == ["created"]


async def test_create_from_job_does_not_validate_technicians(db):
    dispatch = await _create(db, technician_ids=["42", "not-a-number"], job_id="MISSING")

    assert sorted(dispatch.technician_ids) == ["42", "not-a-number"]
    assert all(t.name is None for t in dispatch.technicians)
    assert dispatch.service_order_id is None


async def test_get_missing_dispatch_raises(db):
    with pytest.raises(NotFound):
        await _service(db).get("01HZZZZZZZZZZZZZZZZZZZZZZZ")


async def test_list_dispatches_filters_and_pages(db, technician, job):
    first = await _create(db)
    await _create(db, technician_ids=["8"], priority=Priority.LOW)
    svc = _service(db)

    items, total = await svc.list_dispatches(1, 20, technician_id="7")
    assert total == 1
    assert items[0].id == first.id

    items, total = await svc.list_dispatches(1, 20, priority="low")
    assert total == 1

    items, total = await svc.list_dispatches(2, 1)
    assert total == 2
    assert len(items) == 1


# ── Status machine ───────────────────────────────────────

async def test_happy_path_through_completion(db, technician, job):
    svc = _service(db)
    dispatch = await _create(db)

    dispatch = await svc.update_status(dispatch.id, DispatchStatus.ASSIGNED)
    assert dispatch.status is DispatchStatus.ASSIGNED

    dispatch = await svc.update_status(dispatch.id, "in_progress")
    assert dispatch.status is DispatchStatus.IN_PROGRESS
    assert dispatch.actual_start_time is not None

    dispatch = await svc.update_status(dispatch.id, DispatchStatus.COMPLETED)
    assert dispatch.status is DispatchStatus.COMPLETED
    assert dispatch.actual_end_time is not None
    assert dispatch.completion_percentage == 100
    assert dispatch.actual_duration is not None
    assert [h.new_value for h in dispatch.history] == ["pending", "assigned", "in_progress", "completed"]


async def test_illegal_transition_names_both_states(db, job):
    svc = _service(db)
    dispatch = await _create(db)

    with pytest.raises(InvalidTransition) as exc_info:
        await svc.update_status(dispatch.id, DispatchStatus.COMPLETED)
    assert "pending -> completed" in exc_info.value.message

    reloaded = await svc.get(dispatch.id)
    assert reloaded.status is DispatchStatus.PENDING


async def test_self_transition_is_a_no_op(db, job):
    svc = _service(db)
    dispatch = await _create(db)

    same = await svc.update_status(dispatch.id, DispatchStatus.PENDING)
    assert same.status is DispatchStatus.PENDING
    assert len(same.history) == 1


async def test_terminal_states_reject_moves(db, job):
    svc = _service(db)
    dispatch = await _create(db)
    await svc.cancel(dispatch.id, reason="customer rescheduled")

    with pytest.raises(InvalidTransition):
        await svc.update_status(dispatch.id, DispatchStatus.ASSIGNED)


async def test_start_and_complete_compute_duration(db, job):
    svc = _service(db)
    dispatch = await _create(db)

    started = await svc.start(dispatch.id, datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc))
    assert started.status is DispatchStatus.IN_PROGRESS

    done = await svc.complete(
        dispatch.id, datetime(2024, 6, 1, 11, 30, tzinfo=timezone.utc), completion_percentage=90,
    )
    assert done.status is DispatchStatus.COMPLETED
    assert done.actual_duration == 150
    assert done.completion_percentage == 90


async def test_start_requires_pending_or_assigned(db, job):
    svc = _service(db)
    dispatch = await _create(db)
    await svc.start(dispatch.id)

    with pytest.raises(InvalidState):
        await svc.start(dispatch.id)


async def test_complete_requires_in_progress(db, job):
    svc = _service(db)
    dispatch = await _create(db)

    with pytest.raises(InvalidState):
        await svc.complete(dispatch.id)


# ── Update & delete ──────────────────────────────────────

async def test_update_replaces_technician_set(db, technician, job):
    svc = _service(db)
    dispatch = await _create(db)

    updated = await svc.update(
        dispatch.id,
        DispatchUpdate(technician_ids=["7", "8"], scheduled_start_time=time(10, 0), priority=Priority.LOW),
    )
    assert sorted(updated.technician_ids) == ["7", "8"]
    assert updated.scheduled_start_time == time(10, 0)
    assert updated.scheduled_end_time == time(11, 0)
    assert updated.priority is Priority.LOW

    updated = await svc.update(dispatch.id, DispatchUpdate(technician_ids=["8"]))
    assert updated.technician_ids == ["8"]


async def test_update_rejects_inverted_window(db, job):
    svc = _service(db)
    dispatch = await _create(db)

    with pytest.raises(ValidationError):
        await svc.update(dispatch.id, DispatchUpdate(scheduled_start_time=time(15, 0)))

    reloaded = await svc.get(dispatch.id)
    assert reloaded.scheduled_start_time == time(9, 0)
    assert reloaded.scheduled_end_time == time(11, 0)


async def test_delete_only_pending_or_cancelled(db, job):
    svc = _service(db)
    dispatch = await _create(db)
    await svc.update_status(dispatch.id, DispatchStatus.ASSIGNED)

    with pytest.raises(InvalidState):
        await svc.delete(dispatch.id)

    await svc.cancel(dispatch.id)
    await svc.delete(dispatch.id)

    with pytest.raises(NotFound):
        await svc.get(dispatch.id)
    with pytest.raises(NotFound):
        await svc.delete(dispatch.id)


# ── Field records ────────────────────────────────────────

async def test_time_entry_starts_pending_and_approval_is_one_way(db, job):
    svc = _service(db)
    dispatch = await _create(db)

    entry = await svc.add_time_entry(dispatch.id, TimeEntryCreate(
        technician_id="7",
        start_time=datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc),
        end_time=datetime(2024, 6, 1, 10, 30, tzinfo=timezone.utc),
        billable=True,
        hourly_rate=40,
    ))
    assert entry.status == "pending"
    assert entry.duration == 90
    assert entry.total_cost == 60.0

    approved = await svc.approve_time_entry(dispatch.id, entry.id, "9")
    assert approved.status == "approved"
    assert approved.approved_by == "9"
    first_approved_at = approved.approved_at

    again = await svc.approve_time_entry(dispatch.id, entry.id, "10")
    assert again.approved_by == "9"
    assert again.approved_at == first_approved_at

    assert [e.id for e in await svc.list_time_entries(dispatch.id)] == [entry.id]


async def test_approve_missing_record_raises(db, job):
    svc = _service(db)
    dispatch = await _create(db)

    with pytest.raises(NotFound):
        await svc.approve_time_entry(dispatch.id, "nope", "9")
    with pytest.raises(NotFound):
        await svc.approve_expense(dispatch.id, "nope", "9")
    with pytest.raises(NotFound):
        await svc.approve_material(dispatch.id, "nope", "9")


async def test_expense_and_material(db, job):
    svc = _service(db)
    dispatch = await _create(db)

    expense = await svc.add_expense(dispatch.id, ExpenseCreate(
        technician_id="7", type="parking", amount=12.5, currency="eur",
    ))
    assert expense.currency == "EUR"
    assert expense.status == "pending"
    assert (await svc.approve_expense(dispatch.id, expense.id, "9")).status == "approved"

    material = await svc.add_material_usage(dispatch.id, MaterialCreate(
        article_id="ART-1", quantity=3, unit_price=12.5, used_by="7",
    ))
    assert material.total_price == 37.5
    assert (await svc.approve_material(dispatch.id, material.id, "9")).approved_by == "9"

    assert len(await svc.list_expenses(dispatch.id)) == 1
    assert len(await svc.list_materials(dispatch.id)) == 1


async def test_sub_records_require_existing_dispatch(db):
    svc = _service(db)
    with pytest.raises(NotFound):
        await svc.add_note("missing", NoteCreate(content="hello"))
    with pytest.raises(NotFound):
        await svc.list_expenses("missing")


async def test_note_and_attachment(db, job, attachment_dir):
    svc = _service(db)
    dispatch = await _create(db)

    note = await svc.add_note(dispatch.id, NoteCreate(content="Gate code 1234"), actor="7")
    assert note.created_by == "7"

    attachment = await svc.upload_attachment(
        dispatch.id, "site.JPG", b"\xff\xd8" * 1024,
        content_type="image/jpeg", category="photo", latitude=52.1, longitude=4.3, actor="7",
    )
    assert attachment.file_type == "image/jpeg"
    assert attachment.file_size_mb > 0
    stored = attachment_dir / dispatch.id / f"{attachment.id}.jpg"
    assert stored.exists()

    reloaded = await svc.get(dispatch.id)
    assert len(reloaded.notes) == 1
    assert len(reloaded.attachments) == 1


# ── Statistics ───────────────────────────────────────────

async def test_statistics_on_empty_store(db):
    stats = await _service(db).get_statistics()
    assert stats.total_dispatches == 0
    assert stats.completion_rate == 0.0
    assert stats.average_duration == 0.0


async def test_statistics(db, job):
    svc = _service(db)
    done = await _create(db)
    await svc.start(done.id, datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc))
    await svc.complete(done.id, datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc))
    await svc.add_time_entry(done.id, TimeEntryCreate(
        technician_id="7",
        start_time=datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc),
        end_time=datetime(2024, 6, 1, 9, 45, tzinfo=timezone.utc),
    ))
    await svc.add_expense(done.id, ExpenseCreate(technician_id="7", type="meal", amount=10))

    cancelled = await _create(db, technician_ids=["8"], priority=Priority.LOW)
    await svc.cancel(cancelled.id)
    await _create(db, technician_ids=["7", "9"], priority=Priority.MEDIUM)

    stats = await svc.get_statistics()
    assert stats.total_dispatches == 3
    assert stats.completed_dispatches == 1
    assert stats.cancelled_dispatches == 1
    assert stats.pending_dispatches == 1
    assert stats.completion_rate == 33.33
    assert stats.average_duration == 60.0
    assert stats.total_technicians == 3
    assert stats.high_priority_count == 1
    assert stats.medium_priority_count == 1
    assert stats.low_priority_count == 1
    assert stats.total_time_spent == 45
    assert stats.total_expenses == 10.0

    filtered = await svc.get_statistics(technician_id="8")
    assert filtered.total_dispatches == 1


def test_summarize_counts_add_up():
    stats = summarize([])
    assert stats.total_dispatches == (
        stats.pending_dispatches + stats.assigned_dispatches + stats.in_progress_dispatches
        + stats.completed_dispatches + stats.cancelled_dispatches
    )


async def _at_status(svc, dispatch_id, status):
    path = {
        DispatchStatus.PENDING: [],
        DispatchStatus.ASSIGNED: [DispatchStatus.ASSIGNED],
        DispatchStatus.IN_PROGRESS: [DispatchStatus.ASSIGNED, DispatchStatus.IN_PROGRESS],
        DispatchStatus.COMPLETED: [DispatchStatus.ASSIGNED, DispatchStatus.IN_PROGRESS, DispatchStatus.COMPLETED],
        DispatchStatus.CANCELLED: [DispatchStatus.CANCELLED],
    }[status]
    for step in path:
        await svc.update_status(dispatch_id, step)


LEGAL_MOVES = {
    (DispatchStatus.PENDING, DispatchStatus.ASSIGNED),
    (DispatchStatus.PENDING, DispatchStatus.CANCELLED),
    (DispatchStatus.ASSIGNED, DispatchStatus.IN_PROGRESS),
    (DispatchStatus.ASSIGNED, DispatchStatus.CANCELLED),
    (DispatchStatus.IN_PROGRESS, DispatchStatus.COMPLETED),
    (DispatchStatus.IN_PROGRESS, DispatchStatus.CANCELLED),
}


@pytest.mark.parametrize("current", list(DispatchStatus))
@pytest.mark.parametrize("requested", list(DispatchStatus))
async def test_update_status_follows_table(db, job, current, requested):
    svc = _service(db)
    dispatch = await _create(db)
    await _at_status(svc, dispatch.id, current)

    if requested is current or (current, requested) in LEGAL_MOVES:
        result = await svc.update_status(dispatch.id, requested)
        assert result.status is requested
    else:
        with pytest.raises(InvalidTransition):
            await svc.update_status(dispatch.id, requested)
        assert (await svc.get(dispatch.id)).status is current


async def test_in_progress_dispatch_cannot_be_deleted(db, job):
    svc = _service(db)
    dispatch = await _create(db)
    await svc.start(dispatch.id)

    with pytest.raises(InvalidState):
        await svc.delete(dispatch.id)
    assert (await svc.get(dispatch.id)).is_deleted is False
