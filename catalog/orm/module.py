"""
catalog/orm/module.py
Ordered content modules for online and free courses
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from catalog.orm.base import BaseModel


class CourseModule(BaseModel):
    __tablename__ = "course_modules"

    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    duration_in_days = Column(Integer, nullable=True)
    position = Column(Integer, nullable=False)
    video_url = Column(String(500), nullable=True)
    learning_objectives = Column(JSON, default=list, nullable=False)
    is_content_published = Column(Boolean, default=False, nullable=False)

    course = relationship("Course", back_populates="modules", lazy="raise")

    __table_args__ = (
        UniqueConstraint("course_id", "position", name="uq_course_modules_position"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description,
            "duration_in_days": self.duration_in_days,
            "position": self.position,
            "video_url": self.video_url,
            "learning_objectives": list(self.learning_objectives or []),
            "is_content_published": self.is_content_published,
        }
