"""
catalog/orm/course.py
Course catalog models: one course row per course, three variants

Online, Offline and Free courses share the invariant-carrying core (name,
slug, status, trending, rating, soft delete) and add their own columns via
single-table inheritance on `variant`.
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime, Numeric,
    ForeignKey, JSON, Enum as SQLEnum, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from catalog.orm.base import BaseModel


class CourseVariant(str, PyEnum):
    """Course variant; also the polymorphic discriminator"""
    ONLINE = "online"
    OFFLINE = "offline"
    FREE = "free"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class CourseStatus(str, PyEnum):
    """Course lifecycle status"""
    DRAFT = "Draft"
    AVAILABLE = "Available"
    UNAVAILABLE = "Unavailable"
    ARCHIVED = "Archived"


class CourseLevel(str, PyEnum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    ACADEMIC = "Academic"


class EnrollmentWindowStatus(str, PyEnum):
    """Offline course enrollment window, derived from batch data"""
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    CLOSED = "Closed"


class Course(BaseModel):
    """
    Shared course record.

    Sections (unit of partial update):
    - core_details: name, description, level, goals, outline, durations
    - category: category / subcategory (lowercase)
    - pricing: currency, base price, plans, offer
    - seo: meta title / description, tags, keywords, media urls
    - additional_features: faqs, refund policy, languages, contact, ...

    Derived fields (slug, trending, rating) are never written by callers.
    """
    __tablename__ = "courses"

    variant = Column(String(20), nullable=False, index=True)

    # Core details
    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    level = Column(SQLEnum(CourseLevel, name="course_level"), nullable=False)
    goals = Column(JSON, default=list, nullable=False)
    syllabus_outline = Column(JSON, default=list, nullable=False)
    prerequisites = Column(JSON, default=list, nullable=False)
    target_audience = Column(JSON, default=list, nullable=False)
    duration_hours = Column(Float, nullable=True)  # online / free
    instructor_ids = Column(JSON, default=list, nullable=False)

    # Category
    category = Column(String(100), nullable=True)
    subcategory = Column(String(100), nullable=True)

    # Status
    status = Column(
        SQLEnum(CourseStatus, name="course_status"),
        default=CourseStatus.DRAFT,
        nullable=False
    )

    # Trending
    trending_score = Column(Float, default=0.0, nullable=False)
    last_trending_update = Column(DateTime, nullable=True)

    # Rating aggregate (derived from reviews)
    rating_average = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    rating_last_updated = Column(DateTime, nullable=True)

    # Pricing (online / offline)
    currency = Column(String(3), nullable=True)
    base_price = Column(Numeric(10, 2), nullable=True)
    payment_plans = Column(JSON, default=list, nullable=False)
    is_on_offer = Column(Boolean, default=False, nullable=False)
    offer_id = Column(
        Integer,
        ForeignKey("offers.id", use_alter=True, name="fk_courses_offer_id"),
        nullable=True
    )
    terms_and_conditions = Column(Text, nullable=True)

    # SEO & marketing
    seo_meta_title = Column(String(200), nullable=True)
    seo_meta_description = Column(String(300), nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    seo_keywords = Column(JSON, default=list, nullable=False)
    promo_video_url = Column(String(500), nullable=True)
    banner_url = Column(String(500), nullable=True)

    # Additional features
    faqs = Column(JSON, default=list, nullable=False)
    refund_policy = Column(JSON, nullable=True)
    available_languages = Column(JSON, default=list, nullable=False)
    accessibility_features = Column(JSON, default=list, nullable=False)
    certificate_template_url = Column(String(500), nullable=True)
    contact_details = Column(JSON, nullable=True)

    # Administrative
    deleted_at = Column(DateTime, nullable=True, index=True)  # Soft delete
    schema_version = Column(String(20), default="1.0.0", nullable=False)

    # Relationships
    modules = relationship(
        "CourseModule",
        back_populates="course",
        lazy="selectin",
        order_by="CourseModule.position",
    )
    enrollments = relationship("Enrollment", back_populates="course", lazy="raise")
    reviews = relationship("Review", back_populates="course", lazy="raise")

    __table_args__ = (
        UniqueConstraint("variant", "name", name="uq_courses_variant_name"),
        UniqueConstraint("variant", "slug", name="uq_courses_variant_slug"),
        # Catalog filtering without full scans
        Index("ix_courses_status_trending", "variant", "status", "trending_score"),
        Index("ix_courses_status_price", "variant", "status", "base_price"),
        Index("ix_courses_status_level", "variant", "status", "level"),
        Index("ix_courses_category", "variant", "category"),
    )

    __mapper_args__ = {
        "polymorphic_on": variant,
    }

    @property
    def course_variant(self) -> CourseVariant:
        return CourseVariant(self.variant)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self):
        return f"<Course(id={self.id}, variant='{self.variant}', slug='{self.slug}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "variant": self.variant,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "level": self.level.value if self.level else None,
            "status": self.status.value if self.status else None,
            "category": self.category,
            "subcategory": self.subcategory,
            "instructor_ids": list(self.instructor_ids or []),
            "trending_score": self.trending_score,
            "last_trending_update": self.last_trending_update.isoformat() if self.last_trending_update else None,
            "rating": {
                "average": self.rating_average,
                "count": self.rating_count,
                "last_updated": self.rating_last_updated.isoformat() if self.rating_last_updated else None,
            },
            "base_price": str(self.base_price) if self.base_price is not None else None,
            "currency": self.currency,
            "is_on_offer": self.is_on_offer,
            "seo": {
                "meta_title": self.seo_meta_title,
                "meta_description": self.seo_meta_description,
                "tags": list(self.tags or []),
                "keywords": list(self.seo_keywords or []),
            },
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "schema_version": self.schema_version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class OnlineCourse(Course):
    """Self-paced online course: hours of content, validity window, discussion groups"""
    validity_months = Column(Integer, nullable=True)
    discussion_groups = Column(JSON, nullable=True)

    __mapper_args__ = {
        "polymorphic_identity": CourseVariant.ONLINE.value,
    }


class OfflineCourse(Course):
    """
    In-person course delivered through batches.

    enrollment_status is derived from batch dates and capacity; see
    catalog.state_machines.enrollment_window.
    """
    duration_days = Column(Integer, nullable=True)
    daily_class_minutes = Column(Integer, nullable=True)
    materials_provided = Column(JSON, nullable=True)
    equipment_required = Column(JSON, nullable=True)
    enrollment_status = Column(
        SQLEnum(EnrollmentWindowStatus, name="enrollment_window_status"),
        nullable=True,
        default=EnrollmentWindowStatus.OPEN,
    )

    batches = relationship(
        "Batch",
        back_populates="course",
        lazy="selectin",
        order_by="Batch.start_date",
    )

    __mapper_args__ = {
        "polymorphic_identity": CourseVariant.OFFLINE.value,
    }

    def to_dict(self):
        data = super().to_dict()
        data["enrollment_status"] = self.enrollment_status.value if self.enrollment_status else None
        data["batch_ids"] = [batch.id for batch in self.batches]
        return data


class FreeCourse(Course):
    """Free course: ordered modules, no pricing"""

    __mapper_args__ = {
        "polymorphic_identity": CourseVariant.FREE.value,
    }


COURSE_MODELS = {
    CourseVariant.ONLINE: OnlineCourse,
    CourseVariant.OFFLINE: OfflineCourse,
    CourseVariant.FREE: FreeCourse,
}


def model_for(variant) -> type:
    """Resolve the mapped class for a variant (enum or value)."""
    return COURSE_MODELS[CourseVariant(variant)]
