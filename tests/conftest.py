"""
Shared fixtures for the course catalog test suite.

Each test gets its own SQLite file so concurrent sessions share one database
and exercise the real locking path.
"""
from datetime import timedelta

import pytest
import pytest_asyncio

from catalog.database import create_engine_for, create_session_factory
from catalog.orm.base import Base, utcnow
from catalog.orm.course import CourseVariant
from catalog.services.course_service import CourseCatalog


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Create test database engine on a temporary file."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'catalog_test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def online_catalog(session_factory):
    return CourseCatalog(session_factory, CourseVariant.ONLINE)


@pytest.fixture
def offline_catalog(session_factory):
    return CourseCatalog(session_factory, CourseVariant.OFFLINE)


@pytest.fixture
def free_catalog(session_factory):
    return CourseCatalog(session_factory, CourseVariant.FREE)


def course_draft(name: str, **extra) -> dict:
    draft = {
        "name": name,
        "level": "Beginner",
        "description": f"A complete introduction to {name.lower()} for new learners.",
    }
    draft.update(extra)
    return draft


def batch_payload(max_students: int = 2, **overrides) -> dict:
    now = utcnow()
    payload = {
        "name": "Morning Batch",
        "instructor_ids": ["inst-1"],
        "start_date": now + timedelta(days=10),
        "end_date": now + timedelta(days=40),
        "max_student_count": max_students,
        "enrollment_start_date": now - timedelta(days=1),
        "enrollment_end_date": now + timedelta(days=5),
        "address": {"city": "Pune"},
    }
    payload.update(overrides)
    return payload


async def publish(catalog: CourseCatalog, course_id: int):
    """Add the mandatory content and make the course Available."""
    if catalog.variant == CourseVariant.OFFLINE:
        batch = await catalog.create_batch(batch_payload())
        await catalog.add_batch(course_id, batch.id)
    else:
        await catalog.add_module(course_id, {"title": "Getting started"})
    return await catalog.change_status(course_id, "Available")


@pytest_asyncio.fixture
async def offline_course_with_batch(offline_catalog):
    """Offline course with one attached two-seat batch: (course_id, batch_id)."""
    course_id = await offline_catalog.create(course_draft("Pottery Basics"))
    batch = await offline_catalog.create_batch(batch_payload(max_students=2))
    await offline_catalog.add_batch(course_id, batch.id)
    return course_id, batch.id
