"""Assignment validation: can these technicians take this job in this window?

Checks are exhaustive. Every conflict found is reported, not just the first,
except a missing job which short-circuits.
"""

from __future__ import annotations

import logging
from datetime import date, time

from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.db import crud
from fieldops.schemas.planning import Conflict, ValidationResult
from fieldops.services.time_windows import windows_overlap

logger = logging.getLogger(__name__)


def parse_technician_id(technician_id: str) -> int | None:
    try:
        return int(technician_id)
    except (TypeError, ValueError):
        return None


class AssignmentValidator:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def validate(
        self,
        job_id: str,
        technician_ids: list[str],
        scheduled_date: date,
        start_time: time,
        end_time: time,
        lock: bool = False,
    ) -> ValidationResult:
        """Run all checks. ``lock`` row-locks each technician for the caller's transaction."""
        result = ValidationResult()

        job = await crud.get_job(self.db, job_id)
        if job is None:
            result.add(Conflict(type="job_not_found", message=f"Job {job_id} not found"))
            return result

        for tech_id in technician_ids:
            numeric_id = parse_technician_id(tech_id)
            if numeric_id is None:
                result.add(Conflict(
                    type="invalid_technician_id",
                    message=f"Invalid technician ID: {tech_id}",
                    technician_id=tech_id,
                ))
                continue

            technician = await crud.get_technician(self.db, numeric_id, lock=lock)
            if technician is None:
                result.add(Conflict(
                    type="technician_not_found",
                    message=f"Technician {tech_id} not found or inactive",
                    technician_id=tech_id,
                ))
                continue

            if await crud.is_on_leave(self.db, numeric_id, scheduled_date):
                result.add(Conflict(
                    type="on_leave",
                    message=f"Technician {technician.full_name or tech_id} is on leave on {scheduled_date.isoformat()}",
                    technician_id=tech_id,
                ))
                continue

            for existing in await crud.list_active_dispatches_on(self.db, tech_id, scheduled_date):
                if existing.scheduled_start_time is None or existing.scheduled_end_time is None:
                    continue
                if windows_overlap(
                    start_time, end_time, existing.scheduled_start_time, existing.scheduled_end_time,
                ):
                    result.add(Conflict(
                        type="time_conflict",
                        message=f"Technician {tech_id} has a conflicting dispatch {existing.dispatch_number}",
                        technician_id=tech_id,
                        conflicting_data={
                            "dispatch_id": existing.id,
                            "dispatch_number": existing.dispatch_number,
                            "scheduled_start_time": existing.scheduled_start_time.isoformat(),
                            "scheduled_end_time": existing.scheduled_end_time.isoformat(),
                        },
                    ))

            missing = set(job.required_skills or []) - set(technician.skills or [])
            if missing:
                result.warnings.append(
                    f"Technician {tech_id} lacks required skills: {', '.join(sorted(missing))}"
                )

        if not result.is_valid:
            logger.info(
                "Assignment of job %s rejected with %d conflict(s)", job_id, len(result.conflicts),
            )
        return result
