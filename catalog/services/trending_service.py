"""
catalog/services/trending_service.py
Trending score calculator

score = enrollments * 0.4 + rating_average * rating_count * 0.4
        + enrollments in the last 30 days * 0.2

The score is cached on the course and recomputed at most once per staleness
window. Writes are a compare-and-swap on the last_trending_update that was
read, so a recompute that loses a race returns the winner's score instead of
overwriting it with one computed from older inputs.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from catalog.config.settings import settings
from catalog.exceptions import StoreUnavailableError
from catalog.orm.base import utcnow
from catalog.orm.course import Course
from catalog.orm.enrollment import Enrollment

logger = logging.getLogger(__name__)

ENROLLMENT_WEIGHT = 0.4
RATING_WEIGHT = 0.4
RECENT_WEIGHT = 0.2


def compute_trending_score(
    enrollment_count: int,
    rating_average: float,
    rating_count: int,
    recent_enrollments: int
) -> float:
    score = (
        enrollment_count * ENROLLMENT_WEIGHT
        + (rating_average or 0) * (rating_count or 0) * RATING_WEIGHT
        + recent_enrollments * RECENT_WEIGHT
    )
    return round(score, 2)


def is_stale(last_update: Optional[datetime], now: datetime, staleness_hours: float = None) -> bool:
    if last_update is None:
        return True
    hours = settings.TRENDING_STALENESS_HOURS if staleness_hours is None else staleness_hours
    return now - last_update >= timedelta(hours=hours)


async def count_enrollments(db: AsyncSession, course_id: int, since: Optional[datetime] = None) -> int:
    query = select(func.count(Enrollment.id)).where(Enrollment.course_id == course_id)
    if since is not None:
        query = query.where(Enrollment.enrolled_at >= since)
    result = await db.execute(query)
    return result.scalar() or 0


async def recompute_trending(
    db: AsyncSession,
    course: Course,
    now: Optional[datetime] = None,
    force: bool = False
) -> float:
    """
    Recompute the trending score for a course, honoring the staleness gate.

    Args:
        db: Database session
        course: Course as last read; its last_trending_update is the CAS token
        now: Clock override
        force: Skip the staleness gate (explicit recompute path only)

    Returns:
        The score now stored on the course

    Raises:
        StoreUnavailableError: enrollment counts could not be read; the stored
            score is left untouched
    """
    now = now or utcnow()
    course_id = course.id
    observed = course.last_trending_update

    if not force and not is_stale(observed, now):
        logger.debug(f"[TRENDING CACHED] course={course_id} score={course.trending_score}")
        return course.trending_score

    try:
        total = await count_enrollments(db, course_id)
        recent = await count_enrollments(
            db, course_id, since=now - timedelta(days=settings.TRENDING_RECENT_WINDOW_DAYS)
        )
    except DBAPIError as e:
        await db.rollback()
        logger.error(f"[TRENDING FAILED] course={course_id} enrollment lookup: {str(e)}")
        raise StoreUnavailableError(f"Enrollment counts unavailable for course {course_id}") from e

    score = compute_trending_score(total, course.rating_average, course.rating_count, recent)

    if observed is None:
        token = Course.last_trending_update.is_(None)
    else:
        token = Course.last_trending_update == observed

    result = await db.execute(
        update(Course)
        .where(Course.id == course_id, token)
        .values(trending_score=score, last_trending_update=now)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await db.commit()
        row = (await db.execute(
            select(Course.trending_score, Course.last_trending_update).where(Course.id == course_id)
        )).one()
        await db.commit()
        set_committed_value(course, "trending_score", row.trending_score)
        set_committed_value(course, "last_trending_update", row.last_trending_update)
        logger.info(f"[TRENDING RACE LOST] course={course_id} keeping score={row.trending_score}")
        return row.trending_score

    await db.commit()
    set_committed_value(course, "trending_score", score)
    set_committed_value(course, "last_trending_update", now)
    logger.info(f"[TRENDING UPDATED] course={course_id} score={score} enrollments={total} recent={recent}")
    return score
