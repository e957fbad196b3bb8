"""
catalog/services/lifecycle_service.py
Status transitions and soft delete for courses
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from catalog.orm.base import utcnow
from catalog.orm.course import Course, CourseStatus
from catalog.state_machines.course_lifecycle import validate_transition

logger = logging.getLogger(__name__)


class LifecycleService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def change_status(self, course: Course, target: CourseStatus) -> Course:
        """
        Move a course to `target`, committing only when the status changes.

        Raises:
            PublishGuardError: target is Available and content is missing
        """
        if not validate_transition(course, target):
            logger.debug(f"[STATUS UNCHANGED] course={course.id} status={target.value}")
            return course

        previous = course.status
        course.status = target
        await self.db.commit()
        logger.info(f"[STATUS CHANGED] course={course.id} {previous.value} → {target.value}")
        return course

    async def soft_delete(self, course: Course) -> Course:
        """Hide a course from every default read. Related rows are left alone."""
        course.deleted_at = utcnow()
        await self.db.commit()
        logger.info(f"[COURSE DELETED] course={course.id} variant={course.variant}")
        return course
