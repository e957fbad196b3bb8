"""
catalog/services/enrollment_service.py
Batch and enrollment management

Seat accounting:
- A seat is claimed with one conditional UPDATE on the batch row
  (enrolled_count < max_student_count), which also recomputes is_full.
  Zero affected rows means the batch is full; no read-then-write window.
- The enrollment row is inserted in the same transaction, so a failed
  insert rolls the seat back with it.

Offline enrollment_status is recomputed from batch data on every enrollment,
by update_enrollment_status and, periodically, refresh_enrollment_statuses.
Each write is a compare-and-swap on the stored status.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from catalog.exceptions import (
    BatchFullError, BatchNotFoundError, NotOpenError, ValidationError
)
from catalog.orm.base import utcnow
from catalog.orm.batch import Batch, BatchStatus
from catalog.orm.course import Course, CourseVariant, OfflineCourse, EnrollmentWindowStatus
from catalog.orm.enrollment import Enrollment
from catalog.schemas.course import BatchInput, parse_input
from catalog.services import query_service
from catalog.state_machines.enrollment_window import derive_batch_status, next_status

logger = logging.getLogger(__name__)


class EnrollmentService:
    """
    Enrollment bookkeeping for one session.

    Usage:
        service = EnrollmentService(db)
        course = await service.enroll_student(course, "student-42", batch_id=7)
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def reload(self, model, course_id: int) -> Course:
        """Re-read a course and its batches, discarding in-session state."""
        result = await self.db.execute(
            query_service.live_courses(model, include_deleted=True)
            .where(model.id == course_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # ================= BATCHES =================

    async def create_batch(self, data) -> Batch:
        payload = parse_input(BatchInput, data)
        batch = Batch(**payload.model_dump())
        self.db.add(batch)
        await self.db.commit()
        logger.info(f"[BATCH CREATED] batch={batch.id} seats={batch.max_student_count}")
        return batch

    async def get_batch(self, batch_id: int) -> Batch:
        batch = await self.db.get(Batch, batch_id, populate_existing=True)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    async def add_batch(self, course: OfflineCourse, batch_id: int) -> OfflineCourse:
        """Attach a batch; re-attaching the same batch is a no-op."""
        batch = await self.get_batch(batch_id)
        if batch.course_id == course.id:
            return course
        if batch.course_id is not None:
            raise ValidationError(
                f"Batch {batch_id} is already attached to course {batch.course_id}",
                {"batch_id": batch_id, "course_id": batch.course_id}
            )

        batch.course_id = course.id
        await self.db.commit()
        logger.info(f"[BATCH ATTACHED] course={course.id} batch={batch_id}")
        return await self.reload(type(course), course.id)

    async def remove_batch(self, course: OfflineCourse, batch_id: int) -> OfflineCourse:
        batch = await self.get_batch(batch_id)
        if batch.course_id != course.id:
            raise BatchNotFoundError(batch_id)

        batch.course_id = None
        await self.db.commit()
        logger.info(f"[BATCH DETACHED] course={course.id} batch={batch_id}")
        return await self.reload(type(course), course.id)

    # ================= ENROLLMENT =================

    async def _existing_enrollment(self, course_id: int, student_id: str) -> Optional[Enrollment]:
        result = await self.db.execute(
            select(Enrollment).where(
                Enrollment.course_id == course_id,
                Enrollment.student_id == student_id
            )
        )
        return result.scalar_one_or_none()

    async def _claim_seat(self, course_id: int, batch: Batch) -> None:
        result = await self.db.execute(
            update(Batch)
            .where(
                Batch.id == batch.id,
                Batch.course_id == course_id,
                Batch.enrolled_count < Batch.max_student_count
            )
            .values(
                enrolled_count=Batch.enrolled_count + 1,
                is_full=(Batch.enrolled_count + 1 >= Batch.max_student_count),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            batch_id, max_students = batch.id, batch.max_student_count
            await self.db.rollback()
            logger.warning(f"[ENROLL BLOCKED] course={course_id} batch={batch_id} full ({max_students})")
            raise BatchFullError(batch_id, max_students)

    async def enroll_student(
        self,
        course: Course,
        student_id: str,
        batch_id: Optional[int] = None
    ) -> Course:
        """
        Enroll a student, claiming a batch seat for offline courses.

        Offline courses have their enrollment_status brought up to date
        before the gate, so a deadline that passed since the last refresh
        is honoured.

        Raises:
            ValidationError: bad student id, or batch given / missing for the variant
            NotOpenError: offline enrollment_status is not Open
            BatchNotFoundError: batch unknown or attached elsewhere
            BatchFullError: no seats left
        """
        if not isinstance(student_id, str) or not student_id.strip():
            raise ValidationError("student_id is required", {"student_id": student_id})
        student_id = student_id.strip()
        course_id = course.id
        is_offline = course.course_variant == CourseVariant.OFFLINE

        if not is_offline and batch_id is not None:
            raise ValidationError(f"{course.course_variant.label} courses have no batches")
        if is_offline and batch_id is None:
            raise ValidationError("batch_id is required for offline courses")

        batch = None
        if is_offline:
            batch = await self.get_batch(batch_id)
            if batch.course_id != course_id:
                raise BatchNotFoundError(batch_id)

        if await self._existing_enrollment(course_id, student_id):
            await self.db.commit()
            logger.info(f"[ENROLL NOOP] course={course_id} student={student_id} already enrolled")
            return course

        if is_offline:
            status = await self._sync_window(course, utcnow())
            await self.db.commit()
            if status != EnrollmentWindowStatus.OPEN:
                if batch.is_full:
                    logger.warning(f"[ENROLL BLOCKED] course={course_id} batch={batch_id} full ({batch.max_student_count})")
                    raise BatchFullError(batch_id, batch.max_student_count)
                logger.warning(f"[ENROLL BLOCKED] course={course_id} status={status.value}")
                raise NotOpenError(course_id, status.value)
            await self._claim_seat(course_id, batch)

        self.db.add(Enrollment(course_id=course_id, student_id=student_id, batch_id=batch_id))
        try:
            await self.db.commit()
        except IntegrityError:
            # Concurrent enrollment of the same student won; its seat stands, ours rolls back
            await self.db.rollback()
            logger.info(f"[ENROLL NOOP] course={course_id} student={student_id} enrolled concurrently")
            return await self.reload(type(course), course_id)

        logger.info(f"[ENROLLED] course={course_id} student={student_id} batch={batch_id}")
        return await self.reload(type(course), course_id)

    # ================= ENROLLMENT STATUS =================

    async def _sync_batch_statuses(self, batches, now: datetime) -> None:
        for batch in batches:
            current = batch.status
            new = derive_batch_status(batch, now)
            if new == current:
                continue
            result = await self.db.execute(
                update(Batch)
                .where(Batch.id == batch.id, Batch.status == current)
                .values(status=new)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                set_committed_value(batch, "status", new)
                logger.info(f"[BATCH STATUS] batch={batch.id} {current.value} → {new.value}")

    async def _sync_window(self, course: OfflineCourse, now: datetime) -> EnrollmentWindowStatus:
        """
        Write the derived enrollment_status with a compare-and-swap on the
        stored one and return what is stored afterwards. Does not commit.
        """
        await self._sync_batch_statuses(course.batches, now)

        current = course.enrollment_status
        new = next_status(current, course.batches, now)
        if new == current:
            return current

        token = (
            OfflineCourse.enrollment_status.is_(None) if current is None
            else OfflineCourse.enrollment_status == current
        )
        result = await self.db.execute(
            update(OfflineCourse)
            .where(OfflineCourse.id == course.id, token)
            .values(enrollment_status=new)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # Someone else moved it first; report what is stored
            stored = await self.db.execute(
                select(OfflineCourse.enrollment_status).where(OfflineCourse.id == course.id)
            )
            new = stored.scalar_one()
            set_committed_value(course, "enrollment_status", new)
            return new

        set_committed_value(course, "enrollment_status", new)
        previous = current.value if current else None
        logger.info(f"[ENROLLMENT STATUS] course={course.id} {previous} → {new.value}")
        return new

    async def update_enrollment_status(
        self,
        course: OfflineCourse,
        now: Optional[datetime] = None
    ) -> EnrollmentWindowStatus:
        """Recompute an offline course's enrollment_status and batch statuses. Idempotent."""
        if course.course_variant != CourseVariant.OFFLINE:
            raise ValidationError(f"{course.course_variant.label} courses have no enrollment window")
        now = now or utcnow()

        course = await self.reload(OfflineCourse, course.id)
        status = await self._sync_window(course, now)
        await self.db.commit()
        return status

    async def refresh_enrollment_statuses(self, now: Optional[datetime] = None) -> int:
        """
        Run update_enrollment_status over every live offline course that is
        not yet closed or still has a batch that has not completed.
        """
        now = now or utcnow()
        result = await self.db.execute(
            query_service.live_courses(OfflineCourse).where(
                OfflineCourse.enrollment_status.is_(None)
                | (OfflineCourse.enrollment_status != EnrollmentWindowStatus.CLOSED)
                | OfflineCourse.batches.any(Batch.status != BatchStatus.COMPLETED)
            )
        )
        courses = list(result.scalars().all())
        await self.db.commit()

        changed = 0
        for course in courses:
            previous = course.enrollment_status
            if await self.update_enrollment_status(course, now) != previous:
                changed += 1
        logger.info(f"[ENROLLMENT REFRESH] checked={len(courses)} changed={changed}")
        return changed
