"""
catalog/services/query_service.py
Soft-delete aware course queries

live_courses() is the only place course SELECTs are built. Every finder
starts from it, so a soft-deleted course never leaks into a default read.
"""
import logging
from typing import List, Optional

from sqlalchemy import select, func, cast, String, Select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.config.settings import settings
from catalog.exceptions import ValidationError
from catalog.orm.batch import Batch
from catalog.orm.course import Course, CourseStatus, CourseLevel

logger = logging.getLogger(__name__)


def live_courses(model=Course, include_deleted: bool = False) -> Select:
    """SELECT over a course model, hiding soft-deleted rows unless asked."""
    query = select(model)
    if not include_deleted:
        query = query.where(model.deleted_at.is_(None))
    return query


def check_page(limit: Optional[int], skip: Optional[int]) -> tuple:
    """Validate (limit, skip), filling in the default page size."""
    limit = settings.DEFAULT_PAGE_SIZE if limit is None else limit
    skip = 0 if skip is None else skip
    if not isinstance(limit, int) or not 1 <= limit <= settings.MAX_PAGE_SIZE:
        raise ValidationError(
            f"limit must be between 1 and {settings.MAX_PAGE_SIZE}",
            {"limit": limit}
        )
    if not isinstance(skip, int) or skip < 0:
        raise ValidationError("skip must be >= 0", {"skip": skip})
    return limit, skip


def json_list_contains(column, value: str):
    """Case-insensitive membership test on a JSON list of strings."""
    return func.lower(cast(column, String)).contains(f'"{value.lower()}"', autoescape=True)


def by_trending(model, query: Select) -> Select:
    return query.order_by(model.trending_score.desc(), model.id.asc())


async def fetch_page(db: AsyncSession, query: Select, limit: int, skip: int) -> List[Course]:
    result = await db.execute(query.offset(skip).limit(limit))
    return list(result.scalars().all())


async def get_course(db: AsyncSession, model, course_id: int, include_deleted: bool = False) -> Optional[Course]:
    result = await db.execute(
        live_courses(model, include_deleted).where(model.id == course_id)
    )
    return result.scalar_one_or_none()


# ================= FINDERS =================

def popular_query(model) -> Select:
    query = live_courses(model).where(model.status == CourseStatus.AVAILABLE)
    return by_trending(model, query)


def category_query(model, category: str) -> Select:
    query = live_courses(model).where(
        model.category == category.strip().lower(),
        model.status == CourseStatus.AVAILABLE
    )
    return by_trending(model, query)


def status_query(model, status: CourseStatus) -> Select:
    return by_trending(model, live_courses(model).where(model.status == status))


def level_query(model, level: CourseLevel) -> Select:
    query = live_courses(model).where(
        model.level == level,
        model.status == CourseStatus.AVAILABLE
    )
    return by_trending(model, query)


def language_query(model, language: str) -> Select:
    query = live_courses(model).where(
        json_list_contains(model.available_languages, language.strip()),
        model.status == CourseStatus.AVAILABLE
    )
    return by_trending(model, query)


def name_query(model, text: str) -> Select:
    query = live_courses(model).where(
        func.lower(model.name).contains(text.strip().lower(), autoescape=True)
    )
    return by_trending(model, query)


def instructor_query(model, instructor_id: str) -> Select:
    query = live_courses(model).where(json_list_contains(model.instructor_ids, str(instructor_id)))
    return by_trending(model, query)


def price_range_query(model, min_price, max_price) -> Select:
    query = live_courses(model).where(
        model.base_price >= min_price,
        model.base_price <= max_price,
        model.status == CourseStatus.AVAILABLE
    )
    return query.order_by(model.base_price.asc(), model.id.asc())


def min_rating_query(model, min_rating: float) -> Select:
    query = live_courses(model).where(
        model.rating_average >= min_rating,
        model.status == CourseStatus.AVAILABLE
    )
    return query.order_by(model.rating_average.desc(), model.rating_count.desc(), model.id.asc())


def recent_query(model) -> Select:
    query = live_courses(model).where(model.status == CourseStatus.AVAILABLE)
    return query.order_by(model.created_at.desc(), model.id.desc())


def batch_query(model, batch_id: int) -> Select:
    query = (
        live_courses(model)
        .join(Batch, Batch.course_id == model.id)
        .where(Batch.id == batch_id)
    )
    return by_trending(model, query)


def date_range_query(model, start, end) -> Select:
    query = live_courses(model).where(model.created_at.between(start, end))
    return query.order_by(model.created_at.desc(), model.id.desc())


def on_offer_query(model) -> Select:
    query = live_courses(model).where(model.is_on_offer.is_(True))
    return by_trending(model, query)
