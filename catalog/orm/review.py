"""
catalog/orm/review.py
Course review model
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Float, Text, DateTime, ForeignKey,
    Enum as SQLEnum, Index
)
from sqlalchemy.orm import relationship

from catalog.orm.base import BaseModel


class ReviewStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELETED = "deleted"


class Review(BaseModel):
    """
    A learner's rating (0-5) and comment on one course.

    Detached reviews keep their row with deleted_at set and stop counting
    toward the course rating.
    """
    __tablename__ = "reviews"

    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    student_id = Column(String(64), nullable=False)
    rating = Column(Float, nullable=False)
    comment = Column(Text, nullable=False)
    status = Column(
        SQLEnum(ReviewStatus, name="review_status"),
        default=ReviewStatus.PENDING,
        nullable=False
    )
    deleted_at = Column(DateTime, nullable=True)  # Soft delete

    course = relationship("Course", back_populates="reviews", lazy="raise")

    __table_args__ = (
        Index("ix_reviews_course_live", "course_id", "deleted_at"),
        Index("ix_reviews_course_student", "course_id", "student_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "student_id": self.student_id,
            "rating": self.rating,
            "comment": self.comment,
            "status": self.status.value if self.status else None,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
