"""
catalog/services/rating_service.py
Rating aggregation over a course's live reviews

The average and count are computed by the UPDATE itself from scalar
subqueries over the reviews table. A review committed by a concurrent caller
is either counted or followed by its own recompute; no count read earlier
is written back.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import Numeric, cast, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from catalog.orm.base import utcnow
from catalog.orm.course import Course, CourseVariant
from catalog.orm.review import Review

logger = logging.getLogger(__name__)

RATING_PRECISION = {
    CourseVariant.ONLINE: 2,
    CourseVariant.OFFLINE: 2,
    CourseVariant.FREE: 1,
}


@dataclass(frozen=True)
class RatingSummary:
    average: float
    count: int


def _live_ratings(course_id):
    return select(Review.rating).where(
        Review.course_id == course_id,
        Review.deleted_at.is_(None)
    ).subquery()


def rating_columns(course_id, precision: int = 2) -> dict:
    """
    Column values for rating_average / rating_count as scalar subqueries.

    Mean of the live ratings rounded to `precision` decimals; 0 for none.
    """
    ratings = _live_ratings(course_id)
    average = select(
        func.coalesce(func.round(cast(func.avg(ratings.c.rating), Numeric), precision), 0)
    ).scalar_subquery()
    count = select(func.count()).select_from(ratings).scalar_subquery()
    return {"rating_average": average, "rating_count": count}


async def update_course_rating(db: AsyncSession, course: Course) -> RatingSummary:
    """
    Recompute and persist a course's rating from its live reviews.

    Commits; the caller triggers trending afterwards.
    """
    now = utcnow()
    await db.execute(
        update(Course)
        .where(Course.id == course.id)
        .values(
            rating_last_updated=now,
            **rating_columns(course.id, RATING_PRECISION[course.course_variant]),
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        select(Course.rating_average, Course.rating_count).where(Course.id == course.id)
    )
    row = result.one()
    await db.commit()

    summary = RatingSummary(average=float(row.rating_average), count=row.rating_count)
    set_committed_value(course, "rating_average", summary.average)
    set_committed_value(course, "rating_count", summary.count)
    set_committed_value(course, "rating_last_updated", now)
    logger.info(f"[RATING UPDATED] course={course.id} average={summary.average} count={summary.count}")
    return summary
