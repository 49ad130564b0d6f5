"""Dispatch lifecycle: creation, status machine, field records, statistics.

Status moves are checked against ``ALLOWED_TRANSITIONS``; ``start`` and
``complete`` are shortcuts with their own preconditions. Every status change
is appended to the dispatch history.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time

from sqlalchemy.ext.asyncio import AsyncSession
from ulid import ULID

from fieldops.config import Settings, get_settings
from fieldops.db import crud
from fieldops.errors import InvalidState, InvalidTransition, NotFound, ValidationError
from fieldops.models import (
    Attachment, Dispatch, DispatchHistory, DispatchStatus, DispatchTechnician,
    Expense, MaterialUsage, Note, Priority, TimeEntry,
)
from fieldops.models.base import as_utc, utcnow
from fieldops.models.dispatch import DELETABLE_STATUSES, can_transition
from fieldops.models.dispatch_records import APPROVED
from fieldops.schemas.dispatch import DispatchStatistics, DispatchUpdate
from fieldops.schemas.dispatch_records import ExpenseCreate, MaterialCreate, NoteCreate, TimeEntryCreate
from fieldops.services import attachment_store
from fieldops.services.time_windows import elapsed_minutes

logger = logging.getLogger(__name__)

STARTABLE_STATUSES = (DispatchStatus.PENDING, DispatchStatus.ASSIGNED)


class DispatchService:
    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    # ── Lookup ───────────────────────────────────────────

    async def get(self, dispatch_id: str) -> Dispatch:
        dispatch = await crud.get_dispatch(self.db, dispatch_id)
        if dispatch is None:
            raise NotFound(f"Dispatch {dispatch_id} not found")
        return dispatch

    async def list_dispatches(
        self, page_number: int, page_size: int, **filters,
    ) -> tuple[list[Dispatch], int]:
        return await crud.list_dispatches(
            self.db, offset=(page_number - 1) * page_size, limit=page_size, **filters,
        )

    # ── Creation ─────────────────────────────────────────

    def _next_number(self) -> str:
        now = utcnow()
        return f"{self.settings.dispatch.number_prefix}-{now:%Y%m%d%H%M%S}-{str(ULID())[-4:]}"

    async def _technician_rows(self, technician_ids: list[str]) -> list[DispatchTechnician]:
        """Link rows for each id, with name/email filled in for known users."""
        numeric = [int(t) for t in technician_ids if t.isdigit()]
        users = await crud.get_users_by_ids(self.db, numeric)
        rows = []
        for tech_id in dict.fromkeys(technician_ids):
            user = users.get(int(tech_id)) if tech_id.isdigit() else None
            rows.append(DispatchTechnician(
                technician_id=tech_id,
                name=user.full_name if user else None,
                email=user.email if user else None,
                assigned_at=utcnow(),
            ))
        return rows

    async def build_from_job(
        self,
        job_id: str,
        technician_ids: list[str],
        scheduled_date: date,
        start_time: time,
        end_time: time,
        priority: Priority | str = Priority.MEDIUM,
        actor: str | None = None,
        estimated_duration: int | None = None,
        notes: str | None = None,
    ) -> Dispatch:
        """Stage a pending dispatch in the session without committing.

        Technician ids are not validated here; planning runs the validator
        before calling this.
        """
        now = utcnow()
        dispatch = Dispatch(
            dispatch_number=self._next_number(),
            job_id=job_id,
            status=DispatchStatus.PENDING,
            priority=Priority(priority),
            scheduled_date=scheduled_date,
            scheduled_start_time=start_time,
            scheduled_end_time=end_time,
            estimated_duration=estimated_duration,
            dispatched_by=actor,
            dispatched_at=now,
            created_at=now,
            updated_at=now,
            required_skills=[],
        )
        job = await crud.get_job(self.db, job_id)
        if job is not None:
            dispatch.service_order_id = job.service_order_id or None
            dispatch.required_skills = list(job.required_skills or [])
            if dispatch.estimated_duration is None:
                dispatch.estimated_duration = job.estimated_duration

        dispatch.technicians.extend(await self._technician_rows(technician_ids))
        dispatch.history.append(DispatchHistory(
            action="created", new_value=DispatchStatus.PENDING.value, changed_by=actor,
        ))
        if notes:
            dispatch.notes.append(Note(content=notes, created_by=actor))
        self.db.add(dispatch)
        await self.db.flush()
        return dispatch

    async def create_from_job(self, job_id: str, actor: str | None = None, **schedule) -> Dispatch:
        dispatch = await self.build_from_job(job_id, actor=actor, **schedule)
        await self.db.commit()
        logger.info("Created dispatch %s for job %s", dispatch.dispatch_number, job_id)
        return await self.get(dispatch.id)

    # ── Mutation ─────────────────────────────────────────

    def _record(self, dispatch: Dispatch, action: str, old: str | None, new: str | None, actor: str | None):
        dispatch.history.append(DispatchHistory(
            action=action, old_value=old, new_value=new, changed_by=actor, changed_at=utcnow(),
        ))

    async def update(self, dispatch_id: str, patch: DispatchUpdate, actor: str | None = None) -> Dispatch:
        dispatch = await self.get(dispatch_id)

        if patch.technician_ids is not None:
            old = ",".join(dispatch.technician_ids)
            dispatch.technicians.clear()
            await self.db.flush()
            dispatch.technicians.extend(await self._technician_rows(patch.technician_ids))
            self._record(dispatch, "technicians_replaced", old, ",".join(patch.technician_ids), actor)

        start = patch.scheduled_start_time or dispatch.scheduled_start_time
        end = patch.scheduled_end_time or dispatch.scheduled_end_time
        if start is not None and end is not None and end <= start:
            raise ValidationError("scheduled_end_time must be after scheduled_start_time")

        for field in ("scheduled_date", "scheduled_start_time", "scheduled_end_time", "estimated_duration"):
            value = getattr(patch, field)
            if value is not None:
                setattr(dispatch, field, value)
        if patch.priority is not None:
            dispatch.priority = patch.priority
        if patch.notes:
            dispatch.notes.append(Note(content=patch.notes, created_by=actor))

        dispatch.updated_at = utcnow()
        await self.db.commit()
        return await self.get(dispatch_id)

    async def update_status(
        self, dispatch_id: str, new_status: DispatchStatus | str, actor: str | None = None,
    ) -> Dispatch:
        dispatch = await self.get(dispatch_id)
        current = dispatch.status
        requested = DispatchStatus(new_status)

        if requested == current:
            return dispatch
        if not can_transition(current, requested):
            raise InvalidTransition(current.value, requested.value)

        now = utcnow()
        dispatch.status = requested
        dispatch.updated_at = now
        if requested is DispatchStatus.IN_PROGRESS:
            dispatch.actual_start_time = now
        elif requested is DispatchStatus.COMPLETED:
            self._finish(dispatch, now, 100)

        self._record(dispatch, "status_changed", current.value, requested.value, actor)
        await self.db.commit()
        logger.info("Dispatch %s: %s -> %s", dispatch.dispatch_number, current.value, requested.value)
        return await self.get(dispatch_id)

    def _finish(self, dispatch: Dispatch, ended_at: datetime, completion_percentage: int):
        dispatch.actual_end_time = ended_at
        dispatch.completion_percentage = completion_percentage
        started = as_utc(dispatch.actual_start_time)
        if started is not None:
            dispatch.actual_duration = elapsed_minutes(started, as_utc(ended_at))

    async def start(
        self, dispatch_id: str, actual_start_time: datetime | None = None, actor: str | None = None,
    ) -> Dispatch:
        dispatch = await self.get(dispatch_id)
        if dispatch.status not in STARTABLE_STATUSES:
            raise InvalidState(
                f"Dispatch {dispatch_id} must be assigned or pending to start (is {dispatch.status.value})"
            )

        previous = dispatch.status
        dispatch.status = DispatchStatus.IN_PROGRESS
        dispatch.actual_start_time = as_utc(actual_start_time) or utcnow()
        dispatch.updated_at = utcnow()
        self._record(dispatch, "status_changed", previous.value, DispatchStatus.IN_PROGRESS.value, actor)
        await self.db.commit()
        return await self.get(dispatch_id)

    async def complete(
        self,
        dispatch_id: str,
        actual_end_time: datetime | None = None,
        completion_percentage: int = 100,
        actor: str | None = None,
    ) -> Dispatch:
        dispatch = await self.get(dispatch_id)
        if dispatch.status is not DispatchStatus.IN_PROGRESS:
            raise InvalidState(
                f"Dispatch {dispatch_id} must be in_progress to complete (is {dispatch.status.value})"
            )

        dispatch.status = DispatchStatus.COMPLETED
        self._finish(dispatch, as_utc(actual_end_time) or utcnow(), completion_percentage)
        dispatch.updated_at = utcnow()
        self._record(
            dispatch, "status_changed",
            DispatchStatus.IN_PROGRESS.value, DispatchStatus.COMPLETED.value, actor,
        )
        await self.db.commit()
        return await self.get(dispatch_id)

    async def cancel(self, dispatch_id: str, reason: str = "", actor: str | None = None) -> Dispatch:
        dispatch = await self.update_status(dispatch_id, DispatchStatus.CANCELLED, actor)
        if reason:
            logger.info("Dispatch %s cancelled: %s", dispatch.dispatch_number, reason)
        return dispatch

    async def delete(self, dispatch_id: str, actor: str | None = None) -> None:
        dispatch = await self.get(dispatch_id)
        if dispatch.status not in DELETABLE_STATUSES:
            raise InvalidState(
                f"Cannot delete dispatch {dispatch_id} unless pending or cancelled (is {dispatch.status.value})"
            )
        dispatch.is_deleted = True
        dispatch.updated_at = utcnow()
        self._record(dispatch, "deleted", dispatch.status.value, None, actor)
        await self.db.commit()
        logger.info("Soft-deleted dispatch %s", dispatch.dispatch_number)

    # ── Time entries ─────────────────────────────────────

    async def add_time_entry(self, dispatch_id: str, body: TimeEntryCreate) -> TimeEntry:
        dispatch = await self.get(dispatch_id)
        start, end = as_utc(body.start_time), as_utc(body.end_time)
        minutes = elapsed_minutes(start, end)
        total_cost = None
        if body.hourly_rate is not None:
            total_cost = round(body.hourly_rate * (end - start).total_seconds() / 3600, 2)

        entry = TimeEntry(
            technician_id=body.technician_id,
            work_type=body.work_type,
            start_time=start,
            end_time=end,
            duration=minutes,
            description=body.description,
            billable=body.billable,
            hourly_rate=body.hourly_rate,
            total_cost=total_cost,
        )
        dispatch.time_entries.append(entry)
        await self.db.commit()
        return entry

    async def list_time_entries(self, dispatch_id: str) -> list[TimeEntry]:
        await self.get(dispatch_id)
        return await crud.list_time_entries(self.db, dispatch_id)

    async def approve_time_entry(self, dispatch_id: str, entry_id: str, approved_by: str) -> TimeEntry:
        entry = await crud.get_time_entry(self.db, dispatch_id, entry_id)
        if entry is None:
            raise NotFound(f"Time entry {entry_id} not found")
        return await self._approve(entry, approved_by)

    # ── Expenses ─────────────────────────────────────────

    async def add_expense(self, dispatch_id: str, body: ExpenseCreate) -> Expense:
        dispatch = await self.get(dispatch_id)
        expense = Expense(
            technician_id=body.technician_id,
            type=body.type,
            amount=body.amount,
            currency=body.currency.upper(),
            description=body.description,
            date=as_utc(body.date) or utcnow(),
        )
        dispatch.expenses.append(expense)
        await self.db.commit()
        return expense

    async def list_expenses(self, dispatch_id: str) -> list[Expense]:
        await self.get(dispatch_id)
        return await crud.list_expenses(self.db, dispatch_id)

    async def approve_expense(self, dispatch_id: str, expense_id: str, approved_by: str) -> Expense:
        expense = await crud.get_expense(self.db, dispatch_id, expense_id)
        if expense is None:
            raise NotFound(f"Expense {expense_id} not found")
        return await self._approve(expense, approved_by)

    # ── Materials ────────────────────────────────────────

    async def add_material_usage(self, dispatch_id: str, body: MaterialCreate) -> MaterialUsage:
        dispatch = await self.get(dispatch_id)
        material = MaterialUsage(
            article_id=body.article_id,
            article_name=body.article_name,
            sku=body.sku,
            quantity=body.quantity,
            unit_price=body.unit_price,
            total_price=round(body.quantity * body.unit_price, 2),
            used_by=body.used_by,
            used_at=utcnow(),
            internal_comment=body.internal_comment,
        )
        dispatch.materials.append(material)
        await self.db.commit()
        return material

    async def list_materials(self, dispatch_id: str) -> list[MaterialUsage]:
        await self.get(dispatch_id)
        return await crud.list_materials(self.db, dispatch_id)

    async def approve_material(self, dispatch_id: str, material_id: str, approved_by: str) -> MaterialUsage:
        material = await crud.get_material(self.db, dispatch_id, material_id)
        if material is None:
            raise NotFound(f"Material {material_id} not found")
        return await self._approve(material, approved_by)

    async def _approve(self, record, approved_by: str):
        # One-way: a second approval keeps the original approver and timestamp.
        if record.status != APPROVED:
            record.status = APPROVED
            record.approved_by = approved_by
            record.approved_at = utcnow()
            await self.db.commit()
        return record

    # ── Notes & attachments ──────────────────────────────

    async def add_note(self, dispatch_id: str, body: NoteCreate, actor: str | None = None) -> Note:
        dispatch = await self.get(dispatch_id)
        note = Note(
            content=body.content,
            category=body.category,
            priority=body.priority,
            created_by=actor,
        )
        dispatch.notes.append(note)
        await self.db.commit()
        return note

    async def upload_attachment(
        self,
        dispatch_id: str,
        file_name: str,
        data: bytes,
        content_type: str | None = None,
        category: str = "",
        description: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        actor: str | None = None,
    ) -> Attachment:
        dispatch = await self.get(dispatch_id)
        attachment = Attachment(
            id=str(ULID()),
            file_name=file_name,
            file_type=content_type or "application/octet-stream",
            file_size_mb=attachment_store.size_in_mb(data),
            category=category,
            description=description,
            latitude=latitude,
            longitude=longitude,
            uploaded_by=actor,
            uploaded_at=utcnow(),
        )
        attachment.storage_path = await attachment_store.save_attachment(
            data, dispatch.id, attachment.id, file_name,
        )
        dispatch.attachments.append(attachment)
        await self.db.commit()
        return attachment

    # ── Statistics ───────────────────────────────────────

    async def get_statistics(
        self,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        status: str | None = None,
        technician_id: str | None = None,
    ) -> DispatchStatistics:
        dispatches = await crud.list_dispatches_for_statistics(
            self.db, created_from=date_from, created_to=date_to,
            status=status, technician_id=technician_id,
        )
        return summarize(dispatches)


def summarize(dispatches: list[Dispatch]) -> DispatchStatistics:
    """Aggregate a set of dispatches. Pure function over loaded rows."""
    total = len(dispatches)
    by_status = {s: 0 for s in DispatchStatus}
    by_priority = {p: 0 for p in Priority}
    for d in dispatches:
        by_status[d.status] += 1
        by_priority[d.priority] += 1

    durations = [d.actual_duration for d in dispatches if d.actual_duration is not None]
    completed = by_status[DispatchStatus.COMPLETED]

    return DispatchStatistics(
        total_dispatches=total,
        pending_dispatches=by_status[DispatchStatus.PENDING],
        assigned_dispatches=by_status[DispatchStatus.ASSIGNED],
        in_progress_dispatches=by_status[DispatchStatus.IN_PROGRESS],
        completed_dispatches=completed,
        cancelled_dispatches=by_status[DispatchStatus.CANCELLED],
        completion_rate=round(completed / total * 100, 2) if total else 0.0,
        average_duration=round(sum(durations) / len(durations), 2) if durations else 0.0,
        total_technicians=len({t.technician_id for d in dispatches for t in d.technicians}),
        high_priority_count=by_priority[Priority.HIGH],
        medium_priority_count=by_priority[Priority.MEDIUM],
        low_priority_count=by_priority[Priority.LOW],
        total_time_spent=sum(e.duration for d in dispatches for e in d.time_entries),
        total_expenses=round(sum(e.amount for d in dispatches for e in d.expenses), 2),
        total_materials_cost=round(sum(m.total_price for d in dispatches for m in d.materials), 2),
        generated_at=utcnow(),
    )
