"""Planning: assign jobs to technicians, batch assignment, schedules and availability."""

from __future__ import annotations

import logging
from datetime import date, time

from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.db import crud
from fieldops.errors import AssignmentConflict, FieldOpsError, NotFound, ValidationError
from fieldops.models import ServiceOrderJob
from fieldops.models.base import utcnow
from fieldops.models.dispatch import DispatchStatus
from fieldops.models.planning import SCHEDULED_JOB_STATUS
from fieldops.schemas.dispatch import DispatchRead
from fieldops.schemas.planning import (
    AssignJobRequest, AssignJobResponse, BatchAssignRequest, BatchAssignResponse,
    BatchAssignResult, DispatchCreationWarning, JobRead, LeaveRead, ScheduledDispatch,
    TechnicianAvailability, TechnicianSchedule, ValidateAssignmentRequest, ValidationResult,
    WorkingHoursRead,
)
from fieldops.services.assignment_validator import AssignmentValidator, parse_technician_id
from fieldops.services.dispatches import DispatchService
from fieldops.services.time_windows import (
    WEEKDAY_NAMES, day_of_week, format_hhmm, iter_dates, minutes_between,
)

logger = logging.getLogger(__name__)

DISPATCH_FAILED_MESSAGE = "Job assigned but dispatch creation failed"
BATCH_FAILED_MESSAGE = "Unexpected error while assigning job"


class PlanningService:
    def __init__(self, db: AsyncSession, dispatches: DispatchService | None = None):
        self.db = db
        self.validator = AssignmentValidator(db)
        self.dispatches = dispatches or DispatchService(db)

    async def validate_assignment(self, request: ValidateAssignmentRequest) -> ValidationResult:
        return await self.validator.validate(
            request.job_id,
            request.technician_ids,
            request.scheduled_date,
            request.scheduled_start_time,
            request.scheduled_end_time,
        )

    # ── Assignment ───────────────────────────────────────

    async def assign_job(self, request: AssignJobRequest, actor: str | None = None) -> AssignJobResponse:
        """Validate, schedule the job and (optionally) create its dispatch in one transaction.

        If only the dispatch insert fails, the job update still commits and the
        response carries a warning instead of a dispatch.
        """
        validation = await self.validator.validate(
            request.job_id,
            request.technician_ids,
            request.scheduled_date,
            request.scheduled_start_time,
            request.scheduled_end_time,
            lock=True,
        )
        if not validation.is_valid:
            await self.db.rollback()
            raise AssignmentConflict(validation.conflicts)

        job = await crud.get_job(self.db, request.job_id)
        job.assigned_technician_ids = list(request.technician_ids)
        job.scheduled_date = request.scheduled_date
        job.scheduled_start_time = request.scheduled_start_time
        job.scheduled_end_time = request.scheduled_end_time
        job.status = SCHEDULED_JOB_STATUS
        job.updated_at = utcnow()
        await self.db.flush()

        dispatch = None
        warning = None
        if request.auto_create_dispatch:
            try:
                async with self.db.begin_nested():
                    dispatch = await self.dispatches.build_from_job(
                        job.id,
                        request.technician_ids,
                        request.scheduled_date,
                        request.scheduled_start_time,
                        request.scheduled_end_time,
                        priority=request.priority,
                        actor=actor,
                        notes=request.notes,
                    )
            except Exception:
                dispatch = None
                logger.warning("Job %s assigned but dispatch creation failed", request.job_id, exc_info=True)
                warning = DispatchCreationWarning(job_id=request.job_id, message=DISPATCH_FAILED_MESSAGE)

        await self.db.commit()
        logger.info("Assigned job %s to technicians %s", job.id, ",".join(request.technician_ids))

        dispatch_read = None
        if dispatch is not None:
            dispatch_read = DispatchRead.model_validate(await self.dispatches.get(dispatch.id))
        return AssignJobResponse(
            job=JobRead.model_validate(job), dispatch=dispatch_read, warning=warning,
        )

    async def batch_assign(self, request: BatchAssignRequest, actor: str | None = None) -> BatchAssignResponse:
        """Assign each item in order; one failure does not stop the rest."""
        response = BatchAssignResponse()
        for item in request.assignments:
            item = item.model_copy(update={"auto_create_dispatch": request.auto_create_dispatches})
            try:
                outcome = await self.assign_job(item, actor=actor)
            except FieldOpsError as exc:
                logger.warning("Batch assignment of job %s failed: %s", item.job_id, exc.message)
                response.failed += 1
                response.results.append(BatchAssignResult(
                    job_id=item.job_id, status="failed", error_message=exc.message,
                ))
                continue
            except Exception:
                logger.error("Batch assignment of job %s failed", item.job_id, exc_info=True)
                await self.db.rollback()
                response.failed += 1
                response.results.append(BatchAssignResult(
                    job_id=item.job_id, status="failed", error_message=BATCH_FAILED_MESSAGE,
                ))
                continue

            response.successful += 1
            response.results.append(BatchAssignResult(
                job_id=item.job_id,
                status="success",
                dispatch_id=outcome.dispatch.id if outcome.dispatch else None,
                warning=outcome.warning.message if outcome.warning else None,
            ))
        return response

    # ── Queries ──────────────────────────────────────────

    async def get_unassigned_jobs(
        self,
        page_number: int,
        page_size: int,
        priority: str | None = None,
        skills: list[str] | None = None,
        service_order_id: str | None = None,
    ) -> tuple[list[ServiceOrderJob], int]:
        jobs = await crud.list_unassigned_jobs(
            self.db, priority=priority, service_order_id=service_order_id,
        )
        if skills:
            wanted = set(skills)
            jobs = [j for j in jobs if wanted.issubset(j.required_skills or [])]
        offset = (page_number - 1) * page_size
        return jobs[offset:offset + page_size], len(jobs)

    async def get_technician_schedule(
        self, technician_id: str, start_date: date, end_date: date,
    ) -> TechnicianSchedule:
        numeric_id = parse_technician_id(technician_id)
        if numeric_id is None:
            raise ValidationError(f"Invalid technician ID: {technician_id}")
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date")

        technician = await crud.get_user(self.db, numeric_id)
        if technician is None:
            raise NotFound(f"Technician {technician_id} not found")

        hours = {h.day_of_week: h for h in await crud.list_working_hours(self.db, numeric_id)}
        dispatches = await crud.list_dispatches_between(self.db, technician_id, start_date, end_date)
        leaves = await crud.list_approved_leaves_between(self.db, numeric_id, start_date, end_date)

        scheduled_minutes = sum(
            minutes_between(d.scheduled_start_time, d.scheduled_end_time)
            for d in dispatches
            if d.status is not DispatchStatus.CANCELLED
            and d.scheduled_start_time is not None and d.scheduled_end_time is not None
        )
        working_minutes = 0
        for day in iter_dates(start_date, end_date):
            window = hours.get(day_of_week(day))
            if window is not None:
                working_minutes += minutes_between(window.start_time, window.end_time)

        return TechnicianSchedule(
            technician_id=technician_id,
            technician_name=technician.full_name,
            working_hours={
                name: WorkingHoursRead(start=format_hhmm(hours[i].start_time), end=format_hhmm(hours[i].end_time))
                if i in hours else None
                for i, name in enumerate(WEEKDAY_NAMES)
            },
            dispatches=[
                ScheduledDispatch(
                    id=d.id,
                    dispatch_number=d.dispatch_number,
                    job_id=d.job_id,
                    service_order_id=d.service_order_id,
                    scheduled_date=d.scheduled_date,
                    scheduled_start_time=d.scheduled_start_time,
                    scheduled_end_time=d.scheduled_end_time,
                    estimated_duration=d.estimated_duration,
                    status=d.status.value,
                    priority=d.priority.value,
                )
                for d in dispatches
            ],
            leaves=[LeaveRead.model_validate(leave) for leave in leaves],
            total_scheduled_hours=round(scheduled_minutes / 60, 2),
            available_hours=round(max(0, working_minutes - scheduled_minutes) / 60, 2),
        )

    async def get_available_technicians(
        self,
        on_date: date,
        start_time: time,
        end_time: time,
        skills: list[str] | None = None,
    ) -> list[TechnicianAvailability]:
        requested = minutes_between(start_time, end_time)
        weekday = day_of_week(on_date)
        wanted = set(skills or [])

        results = []
        for tech in await crud.list_technicians(self.db):
            if wanted and not wanted.issubset(tech.skills or []):
                continue
            if await crud.is_on_leave(self.db, tech.id, on_date):
                continue

            dispatches = await crud.list_active_dispatches_on(self.db, str(tech.id), on_date)
            scheduled = sum(
                minutes_between(d.scheduled_start_time, d.scheduled_end_time)
                for d in dispatches
                if d.scheduled_start_time is not None and d.scheduled_end_time is not None
            )

            window = next((h for h in await crud.list_working_hours(self.db, tech.id) if h.day_of_week == weekday), None)
            working = minutes_between(window.start_time, window.end_time) if window else 0
            available = working - scheduled if window else 0

            results.append(TechnicianAvailability(
                id=str(tech.id),
                name=tech.full_name,
                email=tech.email,
                skills=list(tech.skills or []),
                status=tech.current_status or "offline",
                is_available=available >= requested,
                available_minutes=available,
                scheduled_minutes=scheduled,
                utilization_percentage=round(scheduled / working * 100, 2) if working else 0.0,
            ))

        results.sort(key=lambda a: (not a.is_available, a.scheduled_minutes))
        return results
