"""
catalog/orm/search_term.py
Weighted search terms, one row per (course, term)
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Index

from catalog.orm.base import Base


class CourseSearchTerm(Base):
    """Rebuilt by catalog.services.search_index on every course write."""
    __tablename__ = "course_search_terms"

    course_id = Column(
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        primary_key=True
    )
    term = Column(String(64), primary_key=True)
    variant = Column(String(20), nullable=False)
    weight = Column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_course_search_terms_variant_term", "variant", "term"),
    )

    def __repr__(self):
        return f"<CourseSearchTerm(course_id={self.course_id}, term='{self.term}', weight={self.weight})>"
