"""
Rating aggregation tests: the in-store aggregate, review attach / detach and
moderation.
"""
import asyncio

import pytest

from catalog.exceptions import NotFoundError, UniquenessError, ValidationError
from catalog.orm.course import OnlineCourse
from catalog.orm.review import Review, ReviewStatus
from catalog.services.rating_service import RatingSummary, update_course_rating
from tests.conftest import course_draft


async def rate_directly(session_factory, course_id, scores, model=OnlineCourse):
    """Insert reviews without the service, then aggregate once."""
    async with session_factory() as db:
        for i, score in enumerate(scores):
            db.add(Review(course_id=course_id, student_id=f"direct-{i}", rating=score, comment="Direct review"))
        await db.commit()
        course = await db.get(model, course_id)
        return await update_course_rating(db, course)


class TestRatingAggregate:

    @pytest.mark.asyncio
    async def test_mean_of_scores(self, online_catalog, session_factory):
        course_id = await online_catalog.create(course_draft("Mean Course"))
        assert await rate_directly(session_factory, course_id, [5, 3, 4]) == RatingSummary(average=4.0, count=3)

    @pytest.mark.asyncio
    async def test_no_reviews(self, online_catalog, session_factory):
        course_id = await online_catalog.create(course_draft("Empty Course"))
        assert await rate_directly(session_factory, course_id, []) == RatingSummary(average=0.0, count=0)

    @pytest.mark.asyncio
    async def test_two_decimals(self, online_catalog, session_factory):
        course_id = await online_catalog.create(course_draft("Precise Course"))
        summary = await rate_directly(session_factory, course_id, [5, 4, 4])
        assert summary.average == 4.33

    @pytest.mark.asyncio
    async def test_counts_rows_written_elsewhere(self, online_catalog, session_factory):
        course_id = await online_catalog.create(course_draft("Shared Course"))
        await online_catalog.attach_review(course_id, {"student_id": "s1", "rating": 2, "comment": "Just okay"})

        summary = await rate_directly(session_factory, course_id, [4])
        assert summary == RatingSummary(average=3.0, count=2)

    @pytest.mark.asyncio
    async def test_concurrent_reviews_are_all_counted(self, online_catalog):
        course_id = await online_catalog.create(course_draft("Crowded Course"))
        scores = [5, 4, 3, 5, 4, 2]

        await asyncio.gather(*[
            online_catalog.attach_review(
                course_id, {"student_id": f"s{i}", "rating": score, "comment": "Concurrent review"}
            )
            for i, score in enumerate(scores)
        ])

        course = await online_catalog.get(course_id)
        assert course.rating_count == len(scores)
        assert course.rating_average == round(sum(scores) / len(scores), 2)


class TestReviewAttachDetach:

    @pytest.mark.asyncio
    async def test_three_reviews(self, online_catalog):
        course_id = await online_catalog.create(course_draft("Rated Course"))

        for student, score in (("s1", 5), ("s2", 3), ("s3", 4)):
            await online_catalog.attach_review(
                course_id, {"student_id": student, "rating": score, "comment": "Useful course"}
            )

        course = await online_catalog.get(course_id)
        assert course.rating_average == 4.0
        assert course.rating_count == 3
        assert course.rating_last_updated is not None

    @pytest.mark.asyncio
    async def test_course_without_reviews(self, online_catalog):
        course_id = await online_catalog.create(course_draft("Unrated Course"))
        course = await online_catalog.get(course_id)
        assert course.rating_average == 0
        assert course.rating_count == 0

    @pytest.mark.asyncio
    async def test_free_course_uses_one_decimal(self, free_catalog):
        course_id = await free_catalog.create(course_draft("Free Rated"))
        for student, score in (("s1", 5), ("s2", 4), ("s3", 4)):
            await free_catalog.attach_review(
                course_id, {"student_id": student, "rating": score, "comment": "Solid content"}
            )
        course = await free_catalog.get(course_id)
        assert course.rating_average == 4.3

    @pytest.mark.asyncio
    async def test_detached_review_stops_counting(self, online_catalog):
        course_id = await online_catalog.create(course_draft("Detach Course"))
        kept = await online_catalog.attach_review(
            course_id, {"student_id": "s1", "rating": 5, "comment": "Loved it"}
        )
        removed = await online_catalog.attach_review(
            course_id, {"student_id": "s2", "rating": 1, "comment": "Not for me"}
        )

        summary = await online_catalog.detach_review(course_id, removed.id)
        assert summary == RatingSummary(average=5.0, count=1)

        course = await online_catalog.get(course_id)
        assert course.rating_average == 5.0
        assert course.rating_count == 1

        with pytest.raises(NotFoundError):
            await online_catalog.detach_review(course_id, removed.id)
        assert kept.id != removed.id

    @pytest.mark.asyncio
    async def test_one_live_review_per_student(self, online_catalog):
        course_id = await online_catalog.create(course_draft("Single Review"))
        review = {"student_id": "s1", "rating": 4, "comment": "Pretty good"}
        first = await online_catalog.attach_review(course_id, review)

        with pytest.raises(UniquenessError):
            await online_catalog.attach_review(course_id, review)

        await online_catalog.detach_review(course_id, first.id)
        again = await online_catalog.attach_review(course_id, review)
        assert again.id != first.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("review", [
        {"student_id": "s1", "rating": 6, "comment": "Too generous"},
        {"student_id": "s1", "rating": -1, "comment": "Too harsh"},
        {"student_id": "s1", "rating": 4, "comment": "meh"},
        {"student_id": "s1", "rating": 4, "comment": "x" * 1001},
    ])
    async def test_invalid_reviews_rejected(self, online_catalog, review):
        course_id = await online_catalog.create(course_draft("Strict Reviews"))
        with pytest.raises(ValidationError):
            await online_catalog.attach_review(course_id, review)


class TestReviewModeration:

    @pytest.mark.asyncio
    async def test_approve_then_reject(self, online_catalog):
        course_id = await online_catalog.create(course_draft("Moderated Course"))
        review = await online_catalog.attach_review(
            course_id, {"student_id": "s1", "rating": 4, "comment": "Helpful labs"}
        )
        assert review.status == ReviewStatus.PENDING

        approved = await online_catalog.update_review_status(course_id, review.id, "approved")
        assert approved.status == ReviewStatus.APPROVED

        rejected = await online_catalog.update_review_status(course_id, review.id, ReviewStatus.REJECTED)
        assert rejected.status == ReviewStatus.REJECTED

    @pytest.mark.asyncio
    async def test_moderation_leaves_rating_alone(self, online_catalog):
        course_id = await online_catalog.create(course_draft("Steady Rating"))
        review = await online_catalog.attach_review(
            course_id, {"student_id": "s1", "rating": 5, "comment": "Great pacing"}
        )
        await online_catalog.update_review_status(course_id, review.id, "rejected")

        course = await online_catalog.get(course_id)
        assert course.rating_average == 5.0
        assert course.rating_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["deleted", "published", None])
    async def test_invalid_status_rejected(self, online_catalog, status):
        course_id = await online_catalog.create(course_draft("Strict Moderation"))
        review = await online_catalog.attach_review(
            course_id, {"student_id": "s1", "rating": 3, "comment": "Average content"}
        )
        with pytest.raises(ValidationError):
            await online_catalog.update_review_status(course_id, review.id, status)

    @pytest.mark.asyncio
    async def test_detached_review_cannot_be_moderated(self, online_catalog):
        course_id = await online_catalog.create(course_draft("Gone Review"))
        review = await online_catalog.attach_review(
            course_id, {"student_id": "s1", "rating": 3, "comment": "Average content"}
        )
        await online_catalog.detach_review(course_id, review.id)

        with pytest.raises(NotFoundError):
            await online_catalog.update_review_status(course_id, review.id, "approved")
        with pytest.raises(NotFoundError):
            await online_catalog.update_review_status(course_id, 9999, "approved")
