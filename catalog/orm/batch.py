"""
catalog/orm/batch.py
Batch model for offline courses

A batch is a scheduled cohort with a fixed number of seats. enrolled_count
and is_full are only ever written by the conditional seat-claim UPDATE in
catalog.services.enrollment_service.
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, JSON,
    Enum as SQLEnum, Index, CheckConstraint
)
from sqlalchemy.orm import relationship

from catalog.orm.base import BaseModel


class BatchStatus(str, PyEnum):
    UPCOMING = "Upcoming"
    ACTIVE = "Active"
    COMPLETED = "Completed"


class Batch(BaseModel):
    __tablename__ = "batches"

    course_id = Column(
        Integer,
        ForeignKey("courses.id"),
        nullable=True,
        index=True
    )

    name = Column(String(50), nullable=False)
    instructor_ids = Column(JSON, default=list, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)

    # Capacity
    max_student_count = Column(Integer, nullable=False)
    enrolled_count = Column(Integer, default=0, nullable=False)
    is_full = Column(Boolean, default=False, nullable=False)

    # Enrollment window
    enrollment_start_date = Column(DateTime, nullable=False)
    enrollment_end_date = Column(DateTime, nullable=False)

    address = Column(JSON, nullable=True)
    schedule = Column(JSON, default=list, nullable=False)
    status = Column(
        SQLEnum(BatchStatus, name="batch_status"),
        default=BatchStatus.UPCOMING,
        nullable=False
    )

    course = relationship("OfflineCourse", back_populates="batches", lazy="raise")

    __table_args__ = (
        CheckConstraint("max_student_count >= 1", name="ck_batches_max_students"),
        CheckConstraint("enrolled_count <= max_student_count", name="ck_batches_capacity"),
        Index("ix_batches_course_start", "course_id", "start_date"),
    )

    @property
    def seats_left(self) -> int:
        return max(self.max_student_count - (self.enrolled_count or 0), 0)

    def __repr__(self):
        return f"<Batch(id={self.id}, course_id={self.course_id}, {self.enrolled_count}/{self.max_student_count})>"

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "name": self.name,
            "instructor_ids": list(self.instructor_ids or []),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "max_student_count": self.max_student_count,
            "enrolled_count": self.enrolled_count,
            "is_full": self.is_full,
            "enrollment_start_date": self.enrollment_start_date.isoformat() if self.enrollment_start_date else None,
            "enrollment_end_date": self.enrollment_end_date.isoformat() if self.enrollment_end_date else None,
            "address": self.address,
            "status": self.status.value if self.status else None,
        }
