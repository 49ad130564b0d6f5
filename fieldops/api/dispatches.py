"""Dispatch API: lifecycle, field records, attachments, statistics."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.config import Settings
from fieldops.dependencies import get_db, get_settings_dep, require_auth, require_role
from fieldops.models import DispatchStatus, Priority
from fieldops.schemas import (
    Approval, AttachmentRead, DispatchCancel, DispatchComplete, DispatchCreateFromJob,
    DispatchDetail, DispatchListItem, DispatchRead, DispatchStart, DispatchStatusUpdate,
    DispatchUpdate, ExpenseCreate, ExpenseRead, MaterialCreate, MaterialRead, NoteCreate,
    NoteRead, Page, TimeEntryCreate, TimeEntryRead,
)
from fieldops.schemas.common import clamp_page
from fieldops.services.auth import AuthContext
from fieldops.services.dispatches import DispatchService

router = APIRouter(prefix="/api/dispatches", tags=["dispatches"])


def ok(data) -> dict:
    return {"success": True, "data": data}


def _service(db: AsyncSession = Depends(get_db)) -> DispatchService:
    return DispatchService(db)


# ── Dispatches ────────────────────────────────────────────

@router.post("/from-job/{job_id}", status_code=201)
async def create_from_job(
    job_id: str,
    body: DispatchCreateFromJob,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    dispatch = await svc.create_from_job(
        job_id,
        actor=auth.user_id,
        technician_ids=body.technician_ids,
        scheduled_date=body.scheduled_date,
        start_time=body.scheduled_start_time,
        end_time=body.scheduled_end_time,
        priority=body.priority,
        estimated_duration=body.estimated_duration,
        notes=body.notes,
    )
    return ok(DispatchRead.model_validate(dispatch))


@router.get("")
async def list_dispatches(
    status: DispatchStatus | None = None,
    priority: Priority | None = None,
    technician_id: str | None = None,
    service_order_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page_number: int = Query(default=1),
    page_size: int | None = None,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
    settings: Settings = Depends(get_settings_dep),
):
    page_number, page_size = clamp_page(
        page_number,
        page_size or settings.pagination.default_page_size,
        settings.pagination.max_page_size,
    )
    items, total = await svc.list_dispatches(
        page_number, page_size,
        status=status, priority=priority, technician_id=technician_id,
        service_order_id=service_order_id, date_from=date_from, date_to=date_to,
    )
    page = Page[DispatchListItem].build(
        [DispatchListItem.model_validate(d) for d in items], page_number, page_size, total,
    )
    return ok(page)


@router.get("/statistics")
async def get_statistics(
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    status: DispatchStatus | None = None,
    technician_id: str | None = None,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    return ok(await svc.get_statistics(date_from, date_to, status, technician_id))


@router.get("/{dispatch_id}")
async def get_dispatch(
    dispatch_id: str,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    return ok(DispatchDetail.model_validate(await svc.get(dispatch_id)))


@router.put("/{dispatch_id}")
async def update_dispatch(
    dispatch_id: str,
    body: DispatchUpdate,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    dispatch = await svc.update(dispatch_id, body, actor=auth.user_id)
    return ok(DispatchRead.model_validate(dispatch))


@router.put("/{dispatch_id}/status")
@router.patch("/{dispatch_id}/status")
async def update_status(
    dispatch_id: str,
    body: DispatchStatusUpdate,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    dispatch = await svc.update_status(dispatch_id, body.status, actor=auth.user_id)
    return ok(DispatchRead.model_validate(dispatch))


@router.post("/{dispatch_id}/start")
async def start_dispatch(
    dispatch_id: str,
    body: DispatchStart | None = None,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    body = body or DispatchStart()
    dispatch = await svc.start(dispatch_id, body.actual_start_time, actor=auth.user_id)
    return ok(DispatchRead.model_validate(dispatch))


@router.post("/{dispatch_id}/complete")
async def complete_dispatch(
    dispatch_id: str,
    body: DispatchComplete | None = None,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    body = body or DispatchComplete()
    dispatch = await svc.complete(
        dispatch_id, body.actual_end_time, body.completion_percentage, actor=auth.user_id,
    )
    return ok(DispatchRead.model_validate(dispatch))


@router.post("/{dispatch_id}/cancel")
async def cancel_dispatch(
    dispatch_id: str,
    body: DispatchCancel | None = None,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    body = body or DispatchCancel()
    dispatch = await svc.cancel(dispatch_id, body.reason, actor=auth.user_id)
    return ok(DispatchRead.model_validate(dispatch))


@router.delete("/{dispatch_id}")
async def delete_dispatch(
    dispatch_id: str,
    auth: AuthContext = Depends(require_role("admin", "dispatcher")),
    svc: DispatchService = Depends(_service),
):
    await svc.delete(dispatch_id, actor=auth.user_id)
    return ok({"id": dispatch_id, "deleted": True})


# ── Time entries ──────────────────────────────────────────

@router.post("/{dispatch_id}/time-entries", status_code=201)
async def add_time_entry(
    dispatch_id: str,
    body: TimeEntryCreate,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    return ok(TimeEntryRead.model_validate(await svc.add_time_entry(dispatch_id, body)))


@router.get("/{dispatch_id}/time-entries")
async def list_time_entries(
    dispatch_id: str,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    entries = await svc.list_time_entries(dispatch_id)
    return ok([TimeEntryRead.model_validate(e) for e in entries])


@router.post("/{dispatch_id}/time-entries/{entry_id}/approve")
async def approve_time_entry(
    dispatch_id: str,
    entry_id: str,
    body: Approval | None = None,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    approver = (body.approved_by if body else None) or auth.user_id
    entry = await svc.approve_time_entry(dispatch_id, entry_id, approver)
    return ok(TimeEntryRead.model_validate(entry))


# ── Expenses ──────────────────────────────────────────────

@router.post("/{dispatch_id}/expenses", status_code=201)
async def add_expense(
    dispatch_id: str,
    body: ExpenseCreate,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    return ok(ExpenseRead.model_validate(await svc.add_expense(dispatch_id, body)))


@router.get("/{dispatch_id}/expenses")
async def list_expenses(
    dispatch_id: str,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    return ok([ExpenseRead.model_validate(e) for e in await svc.list_expenses(dispatch_id)])


@router.post("/{dispatch_id}/expenses/{expense_id}/approve")
async def approve_expense(
    dispatch_id: str,
    expense_id: str,
    body: Approval | None = None,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    approver = (body.approved_by if body else None) or auth.user_id
    return ok(ExpenseRead.model_validate(await svc.approve_expense(dispatch_id, expense_id, approver)))


# ── Materials ─────────────────────────────────────────────

@router.post("/{dispatch_id}/materials", status_code=201)
async def add_material(
    dispatch_id: str,
    body: MaterialCreate,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    return ok(MaterialRead.model_validate(await svc.add_material_usage(dispatch_id, body)))


@router.get("/{dispatch_id}/materials")
async def list_materials(
    dispatch_id: str,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    return ok([MaterialRead.model_validate(m) for m in await svc.list_materials(dispatch_id)])


@router.post("/{dispatch_id}/materials/{material_id}/approve")
async def approve_material(
    dispatch_id: str,
    material_id: str,
    body: Approval | None = None,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    approver = (body.approved_by if body else None) or auth.user_id
    return ok(MaterialRead.model_validate(await svc.approve_material(dispatch_id, material_id, approver)))


# ── Attachments & notes ───────────────────────────────────

@router.post("/{dispatch_id}/attachments", status_code=201)
async def upload_attachment(
    dispatch_id: str,
    file: UploadFile = File(...),
    category: str = Form(default=""),
    description: str | None = Form(default=None),
    latitude: float | None = Form(default=None),
    longitude: float | None = Form(default=None),
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    data = await file.read()
    attachment = await svc.upload_attachment(
        dispatch_id,
        file_name=file.filename or "upload",
        data=data,
        content_type=file.content_type,
        category=category,
        description=description,
        latitude=latitude,
        longitude=longitude,
        actor=auth.user_id,
    )
    return ok(AttachmentRead.model_validate(attachment))


@router.post("/{dispatch_id}/notes", status_code=201)
async def add_note(
    dispatch_id: str,
    body: NoteCreate,
    auth: AuthContext = Depends(require_auth),
    svc: DispatchService = Depends(_service),
):
    return ok(NoteRead.model_validate(await svc.add_note(dispatch_id, body, actor=auth.user_id)))
