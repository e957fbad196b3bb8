"""
Course Lifecycle State Machine

States: Draft, Available, Unavailable, Archived

Every status may move to every other status; the only rule is the publish
guard on Available. Moving to the current status is a no-op.
"""
import logging
from typing import List

from catalog.exceptions import PublishGuardError, ValidationError
from catalog.orm.course import Course, CourseStatus, CourseVariant

logger = logging.getLogger(__name__)


TRANSITIONS = {
    CourseStatus.DRAFT: [CourseStatus.AVAILABLE, CourseStatus.UNAVAILABLE, CourseStatus.ARCHIVED],
    CourseStatus.AVAILABLE: [CourseStatus.DRAFT, CourseStatus.UNAVAILABLE, CourseStatus.ARCHIVED],
    CourseStatus.UNAVAILABLE: [CourseStatus.DRAFT, CourseStatus.AVAILABLE, CourseStatus.ARCHIVED],
    CourseStatus.ARCHIVED: [CourseStatus.DRAFT, CourseStatus.AVAILABLE, CourseStatus.UNAVAILABLE],
}

GUARDED_STATUSES = {CourseStatus.AVAILABLE}


def parse_status(value) -> CourseStatus:
    """Accept a CourseStatus or its value ("Available"); anything else is invalid."""
    if isinstance(value, CourseStatus):
        return value
    try:
        return CourseStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown course status '{value}'",
            {"allowed": [s.value for s in CourseStatus]}
        )


def missing_publish_content(course: Course) -> List[str]:
    """Mandatory content absent from the course, empty when publishable."""
    missing = []
    if not (course.description or "").strip():
        missing.append("description")
    if course.course_variant == CourseVariant.OFFLINE:
        if not course.batches:
            missing.append("batches")
    elif not course.modules:
        missing.append("modules")
    return missing


def can_transition(current: CourseStatus, target: CourseStatus) -> bool:
    return target in TRANSITIONS.get(current, [])


def validate_transition(course: Course, target: CourseStatus) -> bool:
    """
    Validate moving `course` to `target`.

    Returns:
        False when target equals the current status (nothing to do),
        True when the transition may be applied

    Raises:
        ValidationError: transition not in the table
        PublishGuardError: mandatory content missing for Available
    """
    current = course.status
    if current == target:
        return False

    if not can_transition(current, target):
        raise ValidationError(f"Invalid transition: {current.value} → {target.value}")

    if target in GUARDED_STATUSES:
        missing = missing_publish_content(course)
        if missing:
            logger.warning(
                f"[TRANSITION BLOCKED] course={course.id} {current.value} → {target.value} "
                f"missing={missing}"
            )
            raise PublishGuardError(
                f"Course {course.id} cannot become {target.value}: missing {', '.join(missing)}",
                missing=missing
            )
    return True
