"""Query helpers over the entity store.

Seeding helpers (users, jobs, leave, working hours) commit like any CRUD
call. Dispatch queries only read; the lifecycle and planning services own
their transactions.
"""

from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.models import (
    User, TECHNICIAN_ROLE,
    Dispatch, DispatchTechnician, DispatchStatus, Priority,
    TimeEntry, Expense, MaterialUsage,
    ServiceOrderJob, TechnicianLeave, TechnicianWorkingHours,
)
from fieldops.models.dispatch import INACTIVE_STATUSES
from fieldops.models.planning import APPROVED_LEAVE, UNASSIGNED_JOB_STATUSES


# ── Users ─────────────────────────────────────────────────

async def create_user(
    db: AsyncSession, email: str, first_name: str = "", last_name: str = "",
    role: str = TECHNICIAN_ROLE, skills: list[str] | None = None,
    password_hash: str = "", user_id: int | None = None,
) -> User:
    user = User(
        email=email, first_name=first_name, last_name=last_name,
        role=role, skills=skills or [], password_hash=password_hash,
    )
    if user_id is not None:
        user.id = user_id
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(
        select(User).where(User.id == user_id, User.is_deleted == False)
    )
    return result.scalars().first()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalars().first()


async def get_technician(db: AsyncSession, technician_id: int, lock: bool = False) -> User | None:
    """Active technician by id. ``lock`` takes a row lock where the backend supports it."""
    stmt = select(User).where(
        User.id == technician_id,
        User.role == TECHNICIAN_ROLE,
        User.is_active == True,
        User.is_deleted == False,
    )
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalars().first()


async def list_technicians(db: AsyncSession) -> list[User]:
    result = await db.execute(
        select(User)
        .where(User.role == TECHNICIAN_ROLE, User.is_active == True, User.is_deleted == False)
        .order_by(User.id)
    )
    return list(result.scalars().all())


async def get_users_by_ids(db: AsyncSession, user_ids: list[int]) -> dict[int, User]:
    if not user_ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(user_ids)))
    return {u.id: u for u in result.scalars().all()}


# ── Jobs ──────────────────────────────────────────────────

async def create_job(db: AsyncSession, title: str, **kwargs) -> ServiceOrderJob:
    job = ServiceOrderJob(title=title, **kwargs)
    db.add(job)
    await db.commit()
    await db.refresh(job)
    return job


async def get_job(db: AsyncSession, job_id: str) -> ServiceOrderJob | None:
    return await db.get(ServiceOrderJob, job_id)


async def list_unassigned_jobs(
    db: AsyncSession, priority: str | None = None, service_order_id: str | None = None,
) -> list[ServiceOrderJob]:
    stmt = select(ServiceOrderJob).where(ServiceOrderJob.status.in_(UNASSIGNED_JOB_STATUSES))
    if priority:
        stmt = stmt.where(ServiceOrderJob.priority == priority)
    if service_order_id:
        stmt = stmt.where(ServiceOrderJob.service_order_id == service_order_id)
    result = await db.execute(stmt.order_by(ServiceOrderJob.created_at.desc()))
    return list(result.scalars().all())


# ── Leave ─────────────────────────────────────────────────

async def create_leave(
    db: AsyncSession, technician_id: int, start_date: date, end_date: date,
    status: str = "pending", leave_type: str = "vacation", reason: str | None = None,
) -> TechnicianLeave:
    leave = TechnicianLeave(
        technician_id=technician_id, start_date=start_date, end_date=end_date,
        status=status, leave_type=leave_type, reason=reason,
    )
    db.add(leave)
    await db.commit()
    await db.refresh(leave)
    return leave


async def is_on_leave(db: AsyncSession, technician_id: int, on_date: date) -> bool:
    """True when an approved leave covers ``on_date`` (both ends inclusive)."""
    result = await db.execute(
        select(func.count(TechnicianLeave.id)).where(
            TechnicianLeave.technician_id == technician_id,
            TechnicianLeave.status == APPROVED_LEAVE,
            TechnicianLeave.start_date <= on_date,
            TechnicianLeave.end_date >= on_date,
        )
    )
    return result.scalar_one() > 0


async def list_approved_leaves_between(
    db: AsyncSession, technician_id: int, start: date, end: date,
) -> list[TechnicianLeave]:
    result = await db.execute(
        select(TechnicianLeave)
        .where(
            TechnicianLeave.technician_id == technician_id,
            TechnicianLeave.status == APPROVED_LEAVE,
            TechnicianLeave.start_date <= end,
            TechnicianLeave.end_date >= start,
        )
        .order_by(TechnicianLeave.start_date)
    )
    return list(result.scalars().all())


# ── Working hours ─────────────────────────────────────────

async def set_working_hours(
    db: AsyncSession, technician_id: int, day_of_week: int, start_time: time, end_time: time,
) -> TechnicianWorkingHours:
    """Upsert the active window for one weekday (0 = Sunday)."""
    result = await db.execute(
        select(TechnicianWorkingHours).where(
            TechnicianWorkingHours.technician_id == technician_id,
            TechnicianWorkingHours.day_of_week == day_of_week,
        )
    )
    hours = result.scalars().first()
    if hours is None:
        hours = TechnicianWorkingHours(technician_id=technician_id, day_of_week=day_of_week)
        db.add(hours)
    hours.start_time = start_time
    hours.end_time = end_time
    hours.is_active = True
    await db.commit()
    await db.refresh(hours)
    return hours


async def list_working_hours(db: AsyncSession, technician_id: int) -> list[TechnicianWorkingHours]:
    result = await db.execute(
        select(TechnicianWorkingHours)
        .where(
            TechnicianWorkingHours.technician_id == technician_id,
            TechnicianWorkingHours.is_active == True,
        )
        .order_by(TechnicianWorkingHours.day_of_week)
    )
    return list(result.scalars().all())


# ── Dispatches ────────────────────────────────────────────

async def get_dispatch(db: AsyncSession, dispatch_id: str) -> Dispatch | None:
    """Non-deleted dispatch with its child collections freshly loaded."""
    result = await db.execute(
        select(Dispatch)
        .where(Dispatch.id == dispatch_id, Dispatch.is_deleted == False)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


def _dispatch_filters(
    status: str | None = None,
    priority: str | None = None,
    technician_id: str | None = None,
    service_order_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list:
    clauses = [Dispatch.is_deleted == False]
    if status:
        clauses.append(Dispatch.status == DispatchStatus(status))
    if priority:
        clauses.append(Dispatch.priority == Priority(priority))
    if technician_id:
        clauses.append(Dispatch.technicians.any(DispatchTechnician.technician_id == technician_id))
    if service_order_id:
        clauses.append(Dispatch.service_order_id == service_order_id)
    if date_from:
        clauses.append(Dispatch.scheduled_date >= date_from)
    if date_to:
        clauses.append(Dispatch.scheduled_date <= date_to)
    return clauses


async def list_dispatches(
    db: AsyncSession, offset: int = 0, limit: int = 20, **filters,
) -> tuple[list[Dispatch], int]:
    clauses = _dispatch_filters(**filters)
    total = (await db.execute(select(func.count(Dispatch.id)).where(*clauses))).scalar_one()
    result = await db.execute(
        select(Dispatch)
        .where(*clauses)
        .order_by(Dispatch.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def list_active_dispatches_on(
    db: AsyncSession, technician_id: str, on_date: date,
) -> list[Dispatch]:
    """Dispatches still occupying the technician on ``on_date``."""
    result = await db.execute(
        select(Dispatch).where(
            Dispatch.technicians.any(DispatchTechnician.technician_id == technician_id),
            Dispatch.scheduled_date == on_date,
            Dispatch.is_deleted == False,
            Dispatch.status.not_in(INACTIVE_STATUSES),
        )
        .order_by(Dispatch.scheduled_start_time)
    )
    return list(result.scalars().all())


async def list_dispatches_between(
    db: AsyncSession, technician_id: str, start: date, end: date,
) -> list[Dispatch]:
    result = await db.execute(
        select(Dispatch)
        .where(
            Dispatch.technicians.any(DispatchTechnician.technician_id == technician_id),
            Dispatch.scheduled_date >= start,
            Dispatch.scheduled_date <= end,
            Dispatch.is_deleted == False,
        )
        .order_by(Dispatch.scheduled_date, Dispatch.scheduled_start_time)
    )
    return list(result.scalars().all())


async def list_dispatches_for_statistics(
    db: AsyncSession,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    status: str | None = None,
    technician_id: str | None = None,
) -> list[Dispatch]:
    clauses = _dispatch_filters(status=status, technician_id=technician_id)
    if created_from:
        clauses.append(Dispatch.created_at >= created_from)
    if created_to:
        clauses.append(Dispatch.created_at <= created_to)
    result = await db.execute(select(Dispatch).where(*clauses))
    return list(result.scalars().all())


# ── Dispatch records ──────────────────────────────────────

async def get_time_entry(db: AsyncSession, dispatch_id: str, entry_id: str) -> TimeEntry | None:
    result = await db.execute(
        select(TimeEntry).where(TimeEntry.id == entry_id, TimeEntry.dispatch_id == dispatch_id)
    )
    return result.scalars().first()


async def get_expense(db: AsyncSession, dispatch_id: str, expense_id: str) -> Expense | None:
    result = await db.execute(
        select(Expense).where(Expense.id == expense_id, Expense.dispatch_id == dispatch_id)
    )
    return result.scalars().first()


async def get_material(db: AsyncSession, dispatch_id: str, material_id: str) -> MaterialUsage | None:
    result = await db.execute(
        select(MaterialUsage).where(
            MaterialUsage.id == material_id, MaterialUsage.dispatch_id == dispatch_id
        )
    )
    return result.scalars().first()


async def list_time_entries(db: AsyncSession, dispatch_id: str) -> list[TimeEntry]:
    result = await db.execute(
        select(TimeEntry).where(TimeEntry.dispatch_id == dispatch_id).order_by(TimeEntry.start_time)
    )
    return list(result.scalars().all())


async def list_expenses(db: AsyncSession, dispatch_id: str) -> list[Expense]:
    result = await db.execute(
        select(Expense).where(Expense.dispatch_id == dispatch_id).order_by(Expense.created_at)
    )
    return list(result.scalars().all())


async def list_materials(db: AsyncSession, dispatch_id: str) -> list[MaterialUsage]:
    result = await db.execute(
        select(MaterialUsage)
        .where(MaterialUsage.dispatch_id == dispatch_id)
        .order_by(MaterialUsage.created_at)
    )
    return list(result.scalars().all())
