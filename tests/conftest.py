from datetime import time

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fieldops.db import crud
from fieldops.models import Base


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def technician(db):
    """Technician id 7 working 08:00-17:00 on weekdays."""
    tech = await crud.create_user(
        db, "ada@example.com", "Ada", "Lovelace", skills=["hvac", "electrical"], user_id=7,
    )
    for day in range(1, 6):
        await crud.set_working_hours(db, tech.id, day, time(8, 0), time(17, 0))
    return tech


@pytest_asyncio.fixture
async def job(db):
    return await crud.create_job(
        db, "Replace condenser", id="JOB-1", service_order_id="SO-100",
        priority="high", estimated_duration=120, required_skills=["hvac"],
    )


@pytest.fixture
def attachment_dir(tmp_path, monkeypatch):
    """Point attachment storage at a temp directory."""
    from fieldops.services import attachment_store

    base = tmp_path / "attachments"
    base.mkdir()
    monkeypatch.setattr(attachment_store, "_BASE", base)
    return base
