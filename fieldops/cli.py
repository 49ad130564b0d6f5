"""CLI for FieldOps: bootstrap the database, users, tokens and planning data."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from datetime import date, time

from fieldops.services.time_windows import WEEKDAY_NAMES


async def cmd_init_db(args):
    """Create all tables."""
    from fieldops.db.engine import create_all

    await create_all()
    print("Database initialised")


async def cmd_create_user(args):
    """Create a user (technician, dispatcher or admin)."""
    from fieldops.db import crud
    from fieldops.db.engine import async_session_factory, create_all
    from fieldops.services.auth import hash_password

    await create_all()

    password = args.password
    if not password:
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match")
            sys.exit(1)

    if len(password) < 8:
        print("Password must be at least 8 characters")
        sys.exit(1)

    skills = [s.strip() for s in args.skills.split(",") if s.strip()]
    async with async_session_factory() as db:
        if await crud.get_user_by_email(db, args.email):
            print(f"User {args.email} already exists")
            sys.exit(1)
        user = await crud.create_user(
            db,
            email=args.email,
            first_name=args.first_name,
            last_name=args.last_name,
            role=args.role,
            skills=skills,
            password_hash=hash_password(password),
        )

    print(f"User created: {user.email} (id={user.id}, role={user.role})")


async def cmd_issue_token(args):
    """Print a new bearer token for an existing user."""
    from fieldops.config import get_settings
    from fieldops.db import crud
    from fieldops.db.engine import async_session_factory
    from fieldops.services.auth import issue_token

    max_age = args.days or get_settings().auth.token_max_age_days
    async with async_session_factory() as db:
        user = await crud.get_user_by_email(db, args.email)
        if not user or not user.is_active:
            print(f"No active user {args.email}")
            sys.exit(1)
        token = await issue_token(user, db, max_age_days=max_age, label=args.label)

    print(token)


async def cmd_set_hours(args):
    """Set a technician's working window for one weekday."""
    from fieldops.db import crud
    from fieldops.db.engine import async_session_factory

    day = WEEKDAY_NAMES.index(args.day.lower())
    start, end = time.fromisoformat(args.start), time.fromisoformat(args.end)
    if end <= start:
        print("End time must be after start time")
        sys.exit(1)

    async with async_session_factory() as db:
        if not await crud.get_technician(db, args.technician_id):
            print(f"Technician {args.technician_id} not found")
            sys.exit(1)
        await crud.set_working_hours(db, args.technician_id, day, start, end)

    print(f"Working hours for technician {args.technician_id} on {args.day}: {args.start}-{args.end}")


async def cmd_add_leave(args):
    """Record a leave period for a technician."""
    from fieldops.db import crud
    from fieldops.db.engine import async_session_factory

    start, end = date.fromisoformat(args.start), date.fromisoformat(args.end)
    if end < start:
        print("End date must not be before start date")
        sys.exit(1)

    async with async_session_factory() as db:
        leave = await crud.create_leave(
            db, args.technician_id, start, end,
            status=args.status, leave_type=args.type, reason=args.reason or None,
        )

    print(f"Leave {leave.id} recorded ({leave.status}) for technician {args.technician_id}: {start} to {end}")


async def cmd_create_job(args):
    """Create a service-order job awaiting assignment."""
    from fieldops.db import crud
    from fieldops.db.engine import async_session_factory

    async with async_session_factory() as db:
        job = await crud.create_job(
            db,
            args.title,
            service_order_id=args.service_order_id,
            priority=args.priority,
            estimated_duration=args.duration,
            required_skills=[s.strip() for s in args.skills.split(",") if s.strip()],
        )

    print(f"Job created: {job.id} ({job.title})")


def main():
    parser = argparse.ArgumentParser(prog="fieldops", description="FieldOps dispatch management")
    subparsers = parser.add_subparsers(dest="command")

    # init-db
    subparsers.add_parser("init-db", help="Create database tables")

    # create-user
    cu = subparsers.add_parser("create-user", help="Create a user")
    cu.add_argument("--email", required=True)
    cu.add_argument("--first-name", default="")
    cu.add_argument("--last-name", default="")
    cu.add_argument("--role", default="technician", choices=["technician", "dispatcher", "admin"])
    cu.add_argument("--skills", default="", help="Comma-separated skills")
    cu.add_argument("--password", default="", help="Password (prompted if not given)")

    # issue-token
    it = subparsers.add_parser("issue-token", help="Issue a bearer token for a user")
    it.add_argument("--email", required=True)
    it.add_argument("--days", type=int, default=0, help="Lifetime in days (config default if 0)")
    it.add_argument("--label", default="")

    # set-hours
    sh = subparsers.add_parser("set-hours", help="Set weekday working hours")
    sh.add_argument("--technician-id", type=int, required=True)
    sh.add_argument("--day", required=True, choices=WEEKDAY_NAMES)
    sh.add_argument("--start", required=True, help="HH:MM")
    sh.add_argument("--end", required=True, help="HH:MM")

    # add-leave
    al = subparsers.add_parser("add-leave", help="Record technician leave")
    al.add_argument("--technician-id", type=int, required=True)
    al.add_argument("--start", required=True, help="YYYY-MM-DD")
    al.add_argument("--end", required=True, help="YYYY-MM-DD")
    al.add_argument("--type", default="vacation")
    al.add_argument("--status", default="approved", choices=["pending", "approved", "rejected"])
    al.add_argument("--reason", default="")

    # create-job
    cj = subparsers.add_parser("create-job", help="Create an unassigned job")
    cj.add_argument("--title", required=True)
    cj.add_argument("--service-order-id", default="")
    cj.add_argument("--priority", default="medium", choices=["low", "medium", "high"])
    cj.add_argument("--duration", type=int, default=None, help="Estimated minutes")
    cj.add_argument("--skills", default="", help="Comma-separated required skills")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    from fieldops.config import get_settings
    logging.basicConfig(level=get_settings().logging.level.upper())

    commands = {
        "init-db": cmd_init_db,
        "create-user": cmd_create_user,
        "issue-token": cmd_issue_token,
        "set-hours": cmd_set_hours,
        "add-leave": cmd_add_leave,
        "create-job": cmd_create_job,
    }
    asyncio.run(commands[args.command](args))


if __name__ == "__main__":
    main()
