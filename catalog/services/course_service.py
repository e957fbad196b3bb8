"""
catalog/services/course_service.py
Course catalog facade, one instance per variant

CourseCatalog is the surface host services call. It is built with a session
factory, opens one session per operation and bounds every operation with
the store timeout. Input is validated before the session touches the store.

Usage:
    catalog = CourseCatalog(AsyncSessionLocal, CourseVariant.OFFLINE)
    course_id = await catalog.create({"name": "Pottery Basics", "level": "Beginner"})
    await catalog.enroll_student(course_id, "student-1", batch_id=3)
"""
import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog.config.settings import settings
from catalog.exceptions import (
    CatalogException, NotFoundError, StoreUnavailableError, UniquenessError, ValidationError
)
from catalog.orm.course import Course, CourseLevel, CourseStatus, CourseVariant, model_for
from catalog.orm.offer import Offer
from catalog.schemas.course import CourseDraft, parse_input, section_values
from catalog.services import query_service, search_index, trending_service
from catalog.services.enrollment_service import EnrollmentService
from catalog.services.lifecycle_service import LifecycleService
from catalog.services.module_service import ModuleService
from catalog.services.offer_service import OfferService, effective_price
from catalog.services.review_service import ReviewService, parse_review_status
from catalog.services.slug_service import (
    apply_seo_defaults, default_meta_description, default_meta_title, require_slug
)
from catalog.state_machines.course_lifecycle import parse_status

logger = logging.getLogger(__name__)

DRAFT_SECTIONS = ("category", "pricing", "seo", "additional_features")


class CourseCatalog:
    """
    Course operations for a single variant (online, offline or free).

    Every finder hides soft-deleted courses and is paginated with
    (limit, skip), limit in 1..MAX_PAGE_SIZE.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        variant,
        timeout: Optional[float] = None
    ):
        self.session_factory = session_factory
        self.variant = CourseVariant(variant)
        self.model = model_for(self.variant)
        self.timeout = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout

    def __repr__(self):
        return f"<CourseCatalog(variant='{self.variant.value}')>"

    # ================= PLUMBING =================

    async def _run(self, operation, *args, **kwargs):
        """Run `operation(db, ...)` in a fresh session under the store timeout."""
        async with self.session_factory() as db:
            try:
                return await asyncio.wait_for(operation(db, *args, **kwargs), timeout=self.timeout)
            except CatalogException:
                raise
            except asyncio.TimeoutError as e:
                await self._rollback(db)
                logger.error(f"[STORE TIMEOUT] {self.variant.value} {operation.__name__} after {self.timeout}s")
                raise StoreUnavailableError(f"Course store timed out after {self.timeout}s") from e
            except IntegrityError as e:
                await self._rollback(db)
                logger.warning(f"[UNIQUENESS] {self.variant.value} {operation.__name__}: {str(e.orig)}")
                raise UniquenessError("Write conflicts with an existing record", {"error": str(e.orig)}) from e
            except DBAPIError as e:
                await self._rollback(db)
                logger.error(f"[STORE ERROR] {self.variant.value} {operation.__name__}: {str(e)}")
                raise StoreUnavailableError("Course store is unavailable") from e

    @staticmethod
    async def _rollback(db: AsyncSession):
        try:
            await db.rollback()
        except Exception as e:
            logger.error(f"Rollback failed: {str(e)}")

    async def _load(self, db: AsyncSession, course_id: int, include_deleted: bool = False) -> Course:
        course = await query_service.get_course(db, self.model, course_id, include_deleted)
        if course is None:
            raise NotFoundError(f"{self.variant.label} course", course_id)
        return course

    async def _reload(self, db: AsyncSession, course_id: int) -> Course:
        return await EnrollmentService(db).reload(self.model, course_id)

    async def _check_offer(self, db: AsyncSession, values: Dict[str, Any]) -> None:
        if values.get("is_on_offer"):
            offer_id = values.get("offer_id")
            if offer_id is None or await db.get(Offer, offer_id) is None:
                raise ValidationError(
                    "is_course_on_offer requires an existing offer",
                    {"offer_id": offer_id}
                )

    def _require_variant(self, *variants: CourseVariant) -> None:
        if self.variant not in variants:
            raise ValidationError(f"Operation not supported for {self.variant.label} courses")

    async def _index_and_commit(self, db: AsyncSession, course: Course) -> None:
        details = {"name": course.name, "slug": course.slug}
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            raise UniquenessError(
                f"A {self.variant.label} course with this name or slug already exists", details
            ) from e
        await search_index.rebuild_course_terms(db, course)
        await db.commit()

    # ================= WRITES =================

    async def create(self, draft_input) -> int:
        """
        Create a Draft course and return its id.

        Raises:
            ValidationError: malformed input, unsupported section for the variant,
                or a name with no slug-able characters
            UniquenessError: name or slug already used in this variant
        """
        draft = parse_input(CourseDraft, draft_input)
        core = draft.model_dump(exclude_unset=True, exclude=set(DRAFT_SECTIONS))
        values = section_values(self.variant, "core_details", core)
        for section in DRAFT_SECTIONS:
            section_input = getattr(draft, section)
            if section_input is not None:
                values.update(
                    section_values(self.variant, section, section_input.model_dump(exclude_unset=True))
                )
        slug = require_slug(draft.name)
        return await self._run(self._create, values, slug)

    async def _create(self, db: AsyncSession, values: Dict[str, Any], slug: str) -> int:
        await self._check_offer(db, values)
        course = self.model(slug=slug, status=CourseStatus.DRAFT, **values)
        apply_seo_defaults(course)
        db.add(course)
        await self._index_and_commit(db, course)
        logger.info(f"[COURSE CREATED] {self.variant.value} course={course.id} slug={course.slug}")
        return course.id

    async def update_section(self, course_id: int, section: str, partial_update) -> Course:
        """
        Apply a partial update to one section.

        A name change regenerates the slug and any SEO values that were derived
        from the old name or description; explicitly set SEO values are kept.
        """
        values = section_values(self.variant, section, partial_update)
        new_slug = require_slug(values["name"]) if "name" in values else None
        return await self._run(self._update_section, course_id, section, values, new_slug)

    async def _update_section(
        self, db: AsyncSession, course_id: int, section: str, values: Dict[str, Any], new_slug: Optional[str]
    ) -> Course:
        course = await self._load(db, course_id)
        await self._check_offer(db, values)

        title_derived = course.seo_meta_title == default_meta_title(course.name, self.variant.label)
        description_derived = bool(course.description) and (
            course.seo_meta_description == default_meta_description(course.description)
        )

        for column, value in values.items():
            setattr(course, column, value)

        if new_slug is not None and new_slug != course.slug:
            course.slug = new_slug
        if title_derived and "seo_meta_title" not in values:
            course.seo_meta_title = None
        if description_derived and "seo_meta_description" not in values:
            course.seo_meta_description = None
        apply_seo_defaults(course)

        await self._index_and_commit(db, course)
        logger.info(f"[SECTION UPDATED] {self.variant.value} course={course_id} section={section} fields={sorted(values)}")
        return await self._reload(db, course_id)

    async def change_status(self, course_id: int, new_status) -> Course:
        target = parse_status(new_status)
        return await self._run(self._change_status, course_id, target)

    async def _change_status(self, db: AsyncSession, course_id: int, target: CourseStatus) -> Course:
        course = await self._load(db, course_id)
        return await LifecycleService(db).change_status(course, target)

    async def soft_delete(self, course_id: int) -> Course:
        return await self._run(self._soft_delete, course_id)

    async def _soft_delete(self, db: AsyncSession, course_id: int) -> Course:
        course = await self._load(db, course_id)
        return await LifecycleService(db).soft_delete(course)

    # ================= ENROLLMENT & BATCHES =================

    async def enroll_student(self, course_id: int, student_id: str, batch_id: Optional[int] = None) -> Course:
        return await self._run(self._enroll_student, course_id, student_id, batch_id)

    async def _enroll_student(self, db: AsyncSession, course_id: int, student_id: str, batch_id: Optional[int]) -> Course:
        course = await self._load(db, course_id)
        course = await EnrollmentService(db).enroll_student(course, student_id, batch_id)
        await trending_service.recompute_trending(db, course)
        return course

    async def create_batch(self, payload):
        self._require_variant(CourseVariant.OFFLINE)
        return await self._run(self._create_batch, payload)

    async def _create_batch(self, db: AsyncSession, payload):
        return await EnrollmentService(db).create_batch(payload)

    async def add_batch(self, course_id: int, batch_id: int) -> Course:
        self._require_variant(CourseVariant.OFFLINE)
        return await self._run(self._add_batch, course_id, batch_id)

    async def _add_batch(self, db: AsyncSession, course_id: int, batch_id: int) -> Course:
        course = await self._load(db, course_id)
        return await EnrollmentService(db).add_batch(course, batch_id)

    async def remove_batch(self, course_id: int, batch_id: int) -> Course:
        self._require_variant(CourseVariant.OFFLINE)
        return await self._run(self._remove_batch, course_id, batch_id)

    async def _remove_batch(self, db: AsyncSession, course_id: int, batch_id: int) -> Course:
        course = await self._load(db, course_id)
        return await EnrollmentService(db).remove_batch(course, batch_id)

    async def update_enrollment_status(self, course_id: int, now: Optional[datetime] = None):
        self._require_variant(CourseVariant.OFFLINE)
        return await self._run(self._update_enrollment_status, course_id, now)

    async def _update_enrollment_status(self, db: AsyncSession, course_id: int, now: Optional[datetime]):
        course = await self._load(db, course_id)
        return await EnrollmentService(db).update_enrollment_status(course, now)

    async def refresh_enrollment_statuses(self, now: Optional[datetime] = None) -> int:
        self._require_variant(CourseVariant.OFFLINE)
        return await self._run(self._refresh_enrollment_statuses, now)

    async def _refresh_enrollment_statuses(self, db: AsyncSession, now: Optional[datetime]) -> int:
        return await EnrollmentService(db).refresh_enrollment_statuses(now)

    # ================= TRENDING =================

    async def recompute_trending(self, course_id: int, force: bool = False, now: Optional[datetime] = None) -> float:
        return await self._run(self._recompute_trending, course_id, force, now)

    async def _recompute_trending(self, db: AsyncSession, course_id: int, force: bool, now: Optional[datetime]) -> float:
        course = await self._load(db, course_id)
        return await trending_service.recompute_trending(db, course, now=now, force=force)

    # ================= MODULES & REVIEWS =================

    async def add_module(self, course_id: int, module_input):
        self._require_variant(CourseVariant.ONLINE, CourseVariant.FREE)
        return await self._run(self._add_module, course_id, module_input)

    async def _add_module(self, db: AsyncSession, course_id: int, module_input):
        course = await self._load(db, course_id)
        return await ModuleService(db).add_module(course, module_input)

    async def remove_module(self, course_id: int, module_id: int) -> Course:
        """Delete a module; a course left without modules can no longer be published."""
        self._require_variant(CourseVariant.ONLINE, CourseVariant.FREE)
        return await self._run(self._remove_module, course_id, module_id)

    async def _remove_module(self, db: AsyncSession, course_id: int, module_id: int) -> Course:
        course = await self._load(db, course_id)
        await ModuleService(db).remove_module(course, module_id)
        return await self._reload(db, course_id)

    async def attach_review(self, course_id: int, review_input):
        return await self._run(self._attach_review, course_id, review_input)

    async def _attach_review(self, db: AsyncSession, course_id: int, review_input):
        course = await self._load(db, course_id)
        review = await ReviewService(db).attach_review(course, review_input)
        await trending_service.recompute_trending(db, course)
        return review

    async def detach_review(self, course_id: int, review_id: int):
        return await self._run(self._detach_review, course_id, review_id)

    async def _detach_review(self, db: AsyncSession, course_id: int, review_id: int):
        course = await self._load(db, course_id)
        summary = await ReviewService(db).detach_review(course, review_id)
        await trending_service.recompute_trending(db, course)
        return summary

    async def update_review_status(self, course_id: int, review_id: int, status):
        """Set the moderation status of a live review."""
        status = parse_review_status(status)
        return await self._run(self._update_review_status, course_id, review_id, status)

    async def _update_review_status(self, db: AsyncSession, course_id: int, review_id: int, status):
        course = await self._load(db, course_id)
        return await ReviewService(db).update_review_status(course, review_id, status)

    # ================= OFFERS =================

    async def create_offer(self, offer_input) -> Offer:
        self._require_variant(CourseVariant.ONLINE, CourseVariant.OFFLINE)
        return await self._run(self._create_offer, offer_input)

    async def _create_offer(self, db: AsyncSession, offer_input) -> Offer:
        return await OfferService(db).create_offer(offer_input)

    async def claim_offer_seats(self, offer_id: int, amount: int = 1) -> Offer:
        return await self._run(self._claim_offer_seats, offer_id, amount)

    async def _claim_offer_seats(self, db: AsyncSession, offer_id: int, amount: int) -> Offer:
        return await OfferService(db).claim_offer_seats(offer_id, amount)

    async def find_active_offers(self) -> List[Offer]:
        return await self._run(self._find_active_offers)

    async def _find_active_offers(self, db: AsyncSession) -> List[Offer]:
        return await OfferService(db).find_active_offers()

    async def find_expired_offers(self) -> List[Offer]:
        return await self._run(self._find_expired_offers)

    async def _find_expired_offers(self, db: AsyncSession) -> List[Offer]:
        return await OfferService(db).find_expired_offers()

    async def find_offer_by_code(self, code: str) -> Optional[Offer]:
        return await self._run(self._find_offer_by_code, code)

    async def _find_offer_by_code(self, db: AsyncSession, code: str) -> Optional[Offer]:
        return await OfferService(db).find_by_code(code)

    async def effective_price(self, course_id: int, now: Optional[datetime] = None) -> Optional[Decimal]:
        self._require_variant(CourseVariant.ONLINE, CourseVariant.OFFLINE)
        return await self._run(self._effective_price, course_id, now)

    async def _effective_price(self, db: AsyncSession, course_id: int, now: Optional[datetime]) -> Optional[Decimal]:
        course = await self._load(db, course_id)
        offer = await db.get(Offer, course.offer_id) if course.offer_id else None
        return effective_price(course, offer, now)

    # ================= READS =================

    async def get(self, course_id: int, include_deleted: bool = False) -> Course:
        return await self._run(self._load, course_id, include_deleted)

    async def _page(self, query, limit: Optional[int], skip: Optional[int]) -> List[Course]:
        limit, skip = query_service.check_page(limit, skip)
        return await self._run(query_service.fetch_page, query, limit, skip)

    async def search(
        self,
        query_text: Optional[str] = None,
        filters: Optional[dict] = None,
        limit: Optional[int] = None,
        skip: int = 0
    ) -> List[Course]:
        limit, skip = query_service.check_page(limit, skip)
        filters = search_index.validate_filters(filters)
        return await self._run(
            search_index.search_courses, self.model, self.variant.value, query_text, filters, limit, skip
        )

    async def find_popular(self, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        return await self._page(query_service.popular_query(self.model), limit, skip)

    async def find_by_category(self, category: str, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        if not category or not category.strip():
            raise ValidationError("category is required")
        return await self._page(query_service.category_query(self.model, category), limit, skip)

    async def find_by_status(self, status, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        return await self._page(query_service.status_query(self.model, parse_status(status)), limit, skip)

    async def find_by_level(self, level, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        try:
            level = CourseLevel(level)
        except ValueError:
            raise ValidationError(f"Unknown level '{level}'", {"allowed": [l.value for l in CourseLevel]})
        return await self._page(query_service.level_query(self.model, level), limit, skip)

    async def find_by_language(self, language: str, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        if not language or not language.strip():
            raise ValidationError("language is required")
        return await self._page(query_service.language_query(self.model, language), limit, skip)

    async def search_by_name(self, text: str, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        if not text or not text.strip():
            raise ValidationError("search text is required")
        return await self._page(query_service.name_query(self.model, text), limit, skip)

    async def find_by_instructor(self, instructor_id: str, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        if instructor_id is None or not str(instructor_id).strip():
            raise ValidationError("instructor_id is required")
        return await self._page(query_service.instructor_query(self.model, str(instructor_id).strip()), limit, skip)

    async def find_by_price_range(self, min_price, max_price, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        self._require_variant(CourseVariant.ONLINE, CourseVariant.OFFLINE)
        if min_price is None or max_price is None or min_price < 0 or min_price > max_price:
            raise ValidationError(
                "price range must satisfy 0 <= min_price <= max_price",
                {"min_price": min_price, "max_price": max_price}
            )
        return await self._page(query_service.price_range_query(self.model, min_price, max_price), limit, skip)

    async def find_by_min_rating(self, min_rating: float, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        if min_rating is None or not 0 <= min_rating <= 5:
            raise ValidationError("min_rating must be between 0 and 5", {"min_rating": min_rating})
        return await self._page(query_service.min_rating_query(self.model, min_rating), limit, skip)

    async def find_recent(self, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        return await self._page(query_service.recent_query(self.model), limit, skip)

    async def find_by_batch(self, batch_id: int, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        self._require_variant(CourseVariant.OFFLINE)
        return await self._page(query_service.batch_query(self.model, batch_id), limit, skip)

    async def find_by_date_range(
        self, start: datetime, end: datetime, limit: Optional[int] = None, skip: int = 0
    ) -> List[Course]:
        """Courses created between start and end inclusive, newest first."""
        if not isinstance(start, datetime) or not isinstance(end, datetime) or start > end:
            raise ValidationError(
                "date range must satisfy start <= end",
                {"start": str(start), "end": str(end)}
            )
        return await self._page(query_service.date_range_query(self.model, start, end), limit, skip)

    async def find_on_offer(self, limit: Optional[int] = None, skip: int = 0) -> List[Course]:
        self._require_variant(CourseVariant.ONLINE, CourseVariant.OFFLINE)
        return await self._page(query_service.on_offer_query(self.model), limit, skip)
