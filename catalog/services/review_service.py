"""
catalog/services/review_service.py
Course review attach/detach and moderation

Attach and detach end by re-aggregating the course rating. Detached reviews
are soft-deleted, so they simply stop resolving for aggregation. Moderation
moves a live review between pending, approved and rejected.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.exceptions import NotFoundError, UniquenessError, ValidationError
from catalog.orm.base import utcnow
from catalog.orm.course import Course
from catalog.orm.review import Review, ReviewStatus
from catalog.schemas.course import ReviewInput, parse_input
from catalog.services.rating_service import RatingSummary, update_course_rating

logger = logging.getLogger(__name__)

MODERATION_STATUSES = (ReviewStatus.PENDING, ReviewStatus.APPROVED, ReviewStatus.REJECTED)


def parse_review_status(value) -> ReviewStatus:
    """Moderation status from its value; deleted is reached through detach_review only."""
    try:
        status = ReviewStatus(value)
    except ValueError:
        status = None
    if status not in MODERATION_STATUSES:
        raise ValidationError(
            f"Unknown review status '{value}'",
            {"allowed": [s.value for s in MODERATION_STATUSES]}
        )
    return status


class ReviewService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _live_review(self, course_id: int, **criteria):
        query = select(Review).where(Review.course_id == course_id, Review.deleted_at.is_(None))
        for column, value in criteria.items():
            query = query.where(getattr(Review, column) == value)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def attach_review(self, course: Course, data) -> Review:
        """
        Attach a review and refresh the course rating.

        Raises:
            ValidationError: rating outside 0-5 or comment outside 5-1000 chars
            UniquenessError: the student already has a live review on this course
        """
        payload = parse_input(ReviewInput, data)

        if await self._live_review(course.id, student_id=payload.student_id):
            raise UniquenessError(
                f"Student {payload.student_id} has already reviewed course {course.id}",
                {"course_id": course.id, "student_id": payload.student_id}
            )

        review = Review(course_id=course.id, status=ReviewStatus.PENDING, **payload.model_dump())
        self.db.add(review)
        await self.db.commit()
        logger.info(f"[REVIEW ATTACHED] course={course.id} review={review.id} rating={review.rating}")

        await update_course_rating(self.db, course)
        return review

    async def detach_review(self, course: Course, review_id: int) -> RatingSummary:
        review = await self._live_review(course.id, id=review_id)
        if review is None:
            raise NotFoundError("Review", review_id)

        review.deleted_at = utcnow()
        review.status = ReviewStatus.DELETED
        await self.db.commit()
        logger.info(f"[REVIEW DETACHED] course={course.id} review={review_id}")

        return await update_course_rating(self.db, course)

    async def update_review_status(self, course: Course, review_id: int, status: ReviewStatus) -> Review:
        """Set the moderation status of a live review. Ratings are unaffected."""
        review = await self._live_review(course.id, id=review_id)
        if review is None:
            raise NotFoundError("Review", review_id)
        if review.status == status:
            return review

        previous = review.status
        review.status = status
        await self.db.commit()
        logger.info(f"[REVIEW STATUS] course={course.id} review={review_id} {previous.value} → {status.value}")
        return review
