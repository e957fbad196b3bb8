"""
catalog/services/search_index.py
Weighted term index for course search

Each course owns one row per distinct term in course_search_terms. A term's
weight is the sum of the weights of every field it appears in:

    name 10, tags 5, keywords 5, description 3, syllabus outline 2

The rows are rebuilt inside the same transaction as every course write, and
a search sums matched term weights per course.
"""
import logging
import re
from decimal import Decimal
from typing import Dict, List, Optional, Set

from sqlalchemy import select, delete, func, insert
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.exceptions import ValidationError
from catalog.orm.course import Course, CourseLevel
from catalog.orm.search_term import CourseSearchTerm
from catalog.services import query_service
from catalog.state_machines.course_lifecycle import parse_status

logger = logging.getLogger(__name__)

FIELD_WEIGHTS = {
    "name": 10,
    "tags": 5,
    "seo_keywords": 5,
    "description": 3,
    "syllabus_outline": 2,
}

MAX_TERM_LENGTH = 64
STOP_WORDS = {
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in", "is",
    "it", "of", "on", "or", "the", "to", "with",
}

SEARCH_FILTERS = {"status", "category", "level", "language", "min_price", "max_price"}

_TOKEN = re.compile(r"[a-z0-9]+")


def tokenize(text: Optional[str]) -> Set[str]:
    """Lowercase alphanumeric tokens, minus stop words and single characters."""
    if not text:
        return set()
    return {
        token[:MAX_TERM_LENGTH]
        for token in _TOKEN.findall(text.lower())
        if len(token) > 1 and token not in STOP_WORDS
    }


def _field_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(item) for item in value)
    return str(value)


def course_terms(course: Course) -> Dict[str, int]:
    """term -> weight for a course."""
    weights: Dict[str, int] = {}
    for field, weight in FIELD_WEIGHTS.items():
        for term in tokenize(_field_text(getattr(course, field, None))):
            weights[term] = weights.get(term, 0) + weight
    return weights


async def rebuild_course_terms(db: AsyncSession, course: Course) -> int:
    """
    Replace a course's index rows. Runs in the caller's transaction;
    the caller commits.
    """
    terms = course_terms(course)
    await db.execute(delete(CourseSearchTerm).where(CourseSearchTerm.course_id == course.id))
    if terms:
        await db.execute(
            insert(CourseSearchTerm),
            [
                {"course_id": course.id, "variant": course.variant, "term": term, "weight": weight}
                for term, weight in terms.items()
            ]
        )
    logger.debug(f"[SEARCH INDEX] course={course.id} terms={len(terms)}")
    return len(terms)


def validate_filters(filters: Optional[dict]) -> dict:
    """
    Check search filters before any store call and normalise their values.

    Returns a dict holding only the filters that narrow the query.
    """
    if not filters:
        return {}

    unknown = set(filters) - SEARCH_FILTERS
    if unknown:
        raise ValidationError("Unknown search filters", {"filters": sorted(unknown)})

    checked = {}
    if filters.get("status") is not None:
        checked["status"] = parse_status(filters["status"])
    if filters.get("category"):
        checked["category"] = str(filters["category"]).strip().lower()
    if filters.get("level") is not None:
        try:
            checked["level"] = CourseLevel(filters["level"])
        except ValueError:
            raise ValidationError(f"Unknown level '{filters['level']}'")
    if filters.get("language"):
        checked["language"] = filters["language"]
    for bound in ("min_price", "max_price"):
        value = filters.get(bound)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)) or value < 0:
            raise ValidationError(f"{bound} must be a non-negative number", {bound: value})
        checked[bound] = value
    return checked


def apply_filters(model, query, filters: Optional[dict]):
    """Narrow a course query by the supported search filters."""
    filters = validate_filters(filters)

    if "status" in filters:
        query = query.where(model.status == filters["status"])
    if "category" in filters:
        query = query.where(model.category == filters["category"])
    if "level" in filters:
        query = query.where(model.level == filters["level"])
    if "language" in filters:
        query = query.where(query_service.json_list_contains(model.available_languages, filters["language"]))
    if "min_price" in filters:
        query = query.where(model.base_price >= filters["min_price"])
    if "max_price" in filters:
        query = query.where(model.base_price <= filters["max_price"])
    return query


async def search_courses(
    db: AsyncSession,
    model,
    variant: str,
    query_text: Optional[str] = None,
    filters: Optional[dict] = None,
    limit: int = 10,
    skip: int = 0
) -> List[Course]:
    """
    Rank live courses by summed term weight, then trending score.

    Without query terms this is a filtered listing ordered by trending score.
    """
    terms = tokenize(query_text)
    base = apply_filters(model, query_service.live_courses(model), filters)

    if not terms:
        if query_text and query_text.strip():
            return []
        query = query_service.by_trending(model, base)
        return await query_service.fetch_page(db, query, limit, skip)

    score = func.sum(CourseSearchTerm.weight).label("score")
    matches = (
        select(CourseSearchTerm.course_id, score)
        .where(
            CourseSearchTerm.variant == variant,
            CourseSearchTerm.term.in_(sorted(terms))
        )
        .group_by(CourseSearchTerm.course_id)
        .subquery()
    )

    query = (
        base.join(matches, matches.c.course_id == model.id)
        .order_by(matches.c.score.desc(), model.trending_score.desc(), model.id.asc())
    )
    return await query_service.fetch_page(db, query, limit, skip)
