"""
catalog/orm/enrollment.py
Enrollment model: links a learner to a course, optionally through a batch
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum,
    Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from catalog.orm.base import BaseModel, utcnow


class EnrollmentStatus(str, PyEnum):
    ENROLLED = "enrolled"


class Enrollment(BaseModel):
    __tablename__ = "enrollments"

    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    student_id = Column(String(64), nullable=False)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=True, index=True)

    status = Column(
        SQLEnum(EnrollmentStatus, name="enrollment_status"),
        default=EnrollmentStatus.ENROLLED,
        nullable=False
    )
    enrolled_at = Column(DateTime, default=utcnow, nullable=False)

    course = relationship("Course", back_populates="enrollments", lazy="raise")

    __table_args__ = (
        UniqueConstraint("course_id", "student_id", name="uq_enrollments_course_student"),
        # Recent-activity window lookups
        Index("ix_enrollments_course_enrolled_at", "course_id", "enrolled_at"),
    )

    def __repr__(self):
        return f"<Enrollment(course_id={self.course_id}, student_id='{self.student_id}')>"
