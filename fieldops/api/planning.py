"""Planning API: assign jobs, validate assignments, schedules and availability."""

from __future__ import annotations

from datetime import date, time

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.config import Settings
from fieldops.dependencies import get_db, get_settings_dep, require_auth, require_role
from fieldops.schemas import (
    AssignJobRequest, BatchAssignRequest, JobRead, Page, ValidateAssignmentRequest,
)
from fieldops.schemas.common import clamp_page
from fieldops.services.auth import AuthContext
from fieldops.services.planning import PlanningService

router = APIRouter(prefix="/api/planning", tags=["planning"])


def ok(data) -> dict:
    return {"success": True, "data": data}


def _service(db: AsyncSession = Depends(get_db)) -> PlanningService:
    return PlanningService(db)


def _split_skills(skills: list[str] | None) -> list[str]:
    """Accept both ?skills=a&skills=b and ?skills=a,b."""
    return [s.strip() for raw in skills or [] for s in raw.split(",") if s.strip()]


@router.post("/assign")
async def assign_job(
    body: AssignJobRequest,
    auth: AuthContext = Depends(require_role("admin", "dispatcher")),
    svc: PlanningService = Depends(_service),
):
    return ok(await svc.assign_job(body, actor=auth.user_id))


@router.post("/batch-assign")
async def batch_assign(
    body: BatchAssignRequest,
    auth: AuthContext = Depends(require_role("admin", "dispatcher")),
    svc: PlanningService = Depends(_service),
):
    return ok(await svc.batch_assign(body, actor=auth.user_id))


@router.post("/validate-assignment")
async def validate_assignment(
    body: ValidateAssignmentRequest,
    auth: AuthContext = Depends(require_auth),
    svc: PlanningService = Depends(_service),
):
    return ok(await svc.validate_assignment(body))


@router.get("/unassigned-jobs")
async def get_unassigned_jobs(
    priority: str | None = None,
    skills: list[str] | None = Query(default=None),
    service_order_id: str | None = None,
    page_number: int = Query(default=1),
    page_size: int | None = None,
    auth: AuthContext = Depends(require_auth),
    svc: PlanningService = Depends(_service),
    settings: Settings = Depends(get_settings_dep),
):
    page_number, page_size = clamp_page(
        page_number,
        page_size or settings.pagination.default_page_size,
        settings.pagination.max_page_size,
    )
    jobs, total = await svc.get_unassigned_jobs(
        page_number, page_size,
        priority=priority, skills=_split_skills(skills), service_order_id=service_order_id,
    )
    return ok(Page[JobRead].build([JobRead.model_validate(j) for j in jobs], page_number, page_size, total))


@router.get("/technician-schedule/{technician_id}")
async def get_technician_schedule(
    technician_id: str,
    start_date: date,
    end_date: date,
    auth: AuthContext = Depends(require_auth),
    svc: PlanningService = Depends(_service),
):
    return ok(await svc.get_technician_schedule(technician_id, start_date, end_date))


@router.get("/available-technicians")
async def get_available_technicians(
    on_date: date = Query(alias="date"),
    start_time: time = Query(),
    end_time: time = Query(),
    skills: list[str] | None = Query(default=None),
    auth: AuthContext = Depends(require_auth),
    svc: PlanningService = Depends(_service),
):
    return ok(await svc.get_available_technicians(on_date, start_time, end_time, _split_skills(skills)))
