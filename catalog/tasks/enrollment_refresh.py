"""
catalog/tasks/enrollment_refresh.py
Periodic recompute of offline course enrollment status

Batch deadlines pass without any write touching the course, so
enrollment_status is refreshed on a timer as well as on demand.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from catalog.orm.course import CourseVariant
from catalog.services.course_service import CourseCatalog

logger = logging.getLogger(__name__)


async def run_refresh_once(
    session_factory: Optional[async_sessionmaker] = None,
    now: Optional[datetime] = None
) -> int:
    """Run a single refresh cycle; returns the number of courses whose status changed."""
    if session_factory is None:
        from catalog.database import AsyncSessionLocal
        session_factory = AsyncSessionLocal

    catalog = CourseCatalog(session_factory, CourseVariant.OFFLINE)
    changed = await catalog.refresh_enrollment_statuses(now)
    logger.info(f"Enrollment refresh completed: {changed} courses changed")
    return changed


async def refresh_loop(interval_seconds: int = 3600, session_factory: Optional[async_sessionmaker] = None):
    """
    Background refresh loop.
    Runs every interval_seconds (default 1 hour).
    """
    logger.info(f"Starting enrollment refresh loop with interval {interval_seconds}s")

    while True:
        try:
            await run_refresh_once(session_factory)
        except Exception as e:
            logger.error(f"Enrollment refresh loop error: {str(e)}")

        await asyncio.sleep(interval_seconds)


def start_refresh_task(interval_seconds: int = 3600, session_factory: Optional[async_sessionmaker] = None):
    """Start the refresh task as a background coroutine."""
    return asyncio.create_task(refresh_loop(interval_seconds, session_factory))
