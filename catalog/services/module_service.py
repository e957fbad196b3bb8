"""
catalog/services/module_service.py
Ordered content modules for online and free courses
"""
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.exceptions import NotFoundError, UniquenessError, ValidationError
from catalog.orm.course import Course, CourseVariant
from catalog.orm.module import CourseModule
from catalog.schemas.course import ModuleInput, parse_input

logger = logging.getLogger(__name__)

MODULE_VARIANTS = {CourseVariant.ONLINE, CourseVariant.FREE}


class ModuleService:

    def __init__(self, db: AsyncSession):
        self.db = db

    def _require_modules(self, course: Course) -> None:
        if course.course_variant not in MODULE_VARIANTS:
            raise ValidationError(f"{course.course_variant.label} courses do not have modules")

    async def add_module(self, course: Course, data) -> CourseModule:
        """Append a module after the course's last one."""
        self._require_modules(course)
        payload = parse_input(ModuleInput, data)

        result = await self.db.execute(
            select(func.max(CourseModule.position)).where(CourseModule.course_id == course.id)
        )
        position = (result.scalar() or 0) + 1

        module = CourseModule(course_id=course.id, position=position, **payload.model_dump())
        self.db.add(module)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise UniquenessError(
                f"Module position {position} already taken for course {course.id}",
                {"course_id": course.id, "position": position}
            ) from e

        logger.info(f"[MODULE ADDED] course={course.id} module={module.id} position={position}")
        return module

    async def remove_module(self, course: Course, module_id: int) -> None:
        """
        Delete one of the course's modules. Remaining positions keep their
        numbers; the next add_module still appends after the highest.

        Raises:
            NotFoundError: no such module on this course
        """
        self._require_modules(course)
        module = await self.db.get(CourseModule, module_id)
        if module is None or module.course_id != course.id:
            raise NotFoundError("Module", module_id)

        position = module.position
        await self.db.delete(module)
        await self.db.commit()
        logger.info(f"[MODULE REMOVED] course={course.id} module={module_id} position={position}")
