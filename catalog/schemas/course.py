"""
Course Catalog Input Schemas (Pydantic)

Every write into the catalog is parsed through one of these models before
the store is touched, so malformed input never leaves a partial write.
"""
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic import field_validator, model_validator

from catalog.exceptions import ValidationError
from catalog.orm.course import CourseLevel, CourseVariant

OFFER_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{3,20}$")


class _StrictInput(BaseModel):
    """Rejects unknown fields and strips surrounding whitespace."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


# ================= COURSE SECTIONS =================

class CoreDetailsUpdate(_StrictInput):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=5000)
    level: Optional[CourseLevel] = None
    goals: Optional[List[str]] = None
    syllabus_outline: Optional[List[str]] = None
    prerequisites: Optional[List[str]] = None
    target_audience: Optional[List[str]] = None
    instructor_ids: Optional[List[str]] = None
    duration_hours: Optional[float] = Field(None, gt=0)
    duration_days: Optional[int] = Field(None, ge=1)
    daily_class_minutes: Optional[int] = Field(None, ge=1, le=1440)

    @field_validator("name", "level")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v


class CategoryUpdate(_StrictInput):
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    subcategory: Optional[str] = Field(None, max_length=100)

    @field_validator("category", "subcategory")
    @classmethod
    def lowercase(cls, v):
        return v.lower() if v else v


class PaymentPlan(_StrictInput):
    name: str = Field(..., min_length=1, max_length=100)
    installments: int = Field(1, ge=1)
    amount: float = Field(..., ge=0)


class PricingUpdate(_StrictInput):
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    base_price: Optional[Decimal] = Field(None, ge=0)
    payment_plans: Optional[List[PaymentPlan]] = None
    is_course_on_offer: Optional[bool] = None
    offer_id: Optional[int] = None
    validity_months: Optional[int] = Field(None, ge=1)
    terms_and_conditions: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def uppercase_currency(cls, v):
        return v.upper() if v else v

    @model_validator(mode="after")
    def offer_reference_required(self):
        if self.is_course_on_offer and self.offer_id is None:
            raise ValueError("offer_id is required when is_course_on_offer is true")
        return self


class SeoUpdate(_StrictInput):
    meta_title: Optional[str] = Field(None, max_length=60)
    meta_description: Optional[str] = Field(None, max_length=160)
    tags: Optional[List[str]] = None
    keywords: Optional[List[str]] = None
    promo_video_url: Optional[str] = Field(None, max_length=500)
    banner_url: Optional[str] = Field(None, max_length=500)


class FAQ(_StrictInput):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class AdditionalFeaturesUpdate(_StrictInput):
    faqs: Optional[List[FAQ]] = None
    refund_policy: Optional[Dict[str, Any]] = None
    available_languages: Optional[List[str]] = None
    discussion_groups: Optional[List[Dict[str, Any]]] = None
    materials_provided: Optional[List[str]] = None
    equipment_required: Optional[List[str]] = None
    accessibility_features: Optional[List[str]] = None
    certificate_template_url: Optional[str] = Field(None, max_length=500)
    contact_details: Optional[Dict[str, Any]] = None
    terms_and_conditions: Optional[str] = None


SECTION_MODELS: Dict[str, Type[_StrictInput]] = {
    "core_details": CoreDetailsUpdate,
    "category": CategoryUpdate,
    "pricing": PricingUpdate,
    "seo": SeoUpdate,
    "additional_features": AdditionalFeaturesUpdate,
}

# Section field -> column, where they differ
COLUMN_ALIASES = {
    "meta_title": "seo_meta_title",
    "meta_description": "seo_meta_description",
    "keywords": "seo_keywords",
    "is_course_on_offer": "is_on_offer",
}

# Fields a variant has no column for
VARIANT_EXCLUDED_FIELDS = {
    CourseVariant.ONLINE: {
        "duration_days", "daily_class_minutes", "materials_provided", "equipment_required",
    },
    CourseVariant.OFFLINE: {
        "duration_hours", "validity_months", "discussion_groups",
    },
    CourseVariant.FREE: {
        "duration_days", "daily_class_minutes", "materials_provided", "equipment_required",
        "validity_months", "discussion_groups",
    },
}

VARIANT_EXCLUDED_SECTIONS = {
    CourseVariant.FREE: {"pricing"},
}


class CourseDraft(_StrictInput):
    """Create input. Core details are flat; other sections are nested."""
    name: str = Field(..., min_length=3, max_length=100)
    level: CourseLevel
    description: Optional[str] = Field(None, max_length=5000)
    goals: Optional[List[str]] = None
    syllabus_outline: Optional[List[str]] = None
    prerequisites: Optional[List[str]] = None
    target_audience: Optional[List[str]] = None
    instructor_ids: Optional[List[str]] = None
    duration_hours: Optional[float] = Field(None, gt=0)
    duration_days: Optional[int] = Field(None, ge=1)
    daily_class_minutes: Optional[int] = Field(None, ge=1, le=1440)
    category: Optional[CategoryUpdate] = None
    pricing: Optional[PricingUpdate] = None
    seo: Optional[SeoUpdate] = None
    additional_features: Optional[AdditionalFeaturesUpdate] = None


# ================= RELATED ENTITIES =================

class BatchInput(_StrictInput):
    name: str = Field(..., min_length=3, max_length=50)
    instructor_ids: List[str] = Field(default_factory=list)
    start_date: datetime
    end_date: Optional[datetime] = None
    max_student_count: int = Field(..., ge=1)
    enrollment_start_date: datetime
    enrollment_end_date: datetime
    address: Optional[Dict[str, Any]] = None
    schedule: List[Dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_dates(self):
        if self.enrollment_end_date <= self.enrollment_start_date:
            raise ValueError("enrollment_end_date must be after enrollment_start_date")
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ModuleInput(_StrictInput):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    duration_in_days: Optional[int] = Field(None, ge=1)
    video_url: Optional[str] = Field(None, max_length=500)
    learning_objectives: List[str] = Field(default_factory=list)
    is_content_published: bool = False


class ReviewInput(_StrictInput):
    student_id: str = Field(..., min_length=1, max_length=64)
    rating: float = Field(..., ge=0, le=5)
    comment: str = Field(..., min_length=5, max_length=1000)


class OfferInput(_StrictInput):
    code: str
    description: str = Field(..., min_length=1)
    slogan: Optional[str] = Field(None, max_length=100)
    discount_percentage: int = Field(..., ge=0, le=100)
    seats_available: int = Field(..., ge=0)
    valid_until: datetime
    is_active: bool = True
    course_id: Optional[int] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        v = v.upper()
        if not OFFER_CODE_PATTERN.match(v):
            raise ValueError("code must be 3-20 characters of A-Z, 0-9, '_' or '-'")
        return v


def parse_input(model: Type[BaseModel], data: Any) -> BaseModel:
    """
    Validate raw input against a schema.

    Raises:
        ValidationError: with per-field details, before any store call
    """
    if isinstance(data, model):
        return data
    if not isinstance(data, dict):
        raise ValidationError(f"{model.__name__} expects a mapping", {"received": type(data).__name__})
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError(f"Invalid {model.__name__}", {"errors": errors}) from e


def section_values(variant: CourseVariant, section: str, data: Any) -> Dict[str, Any]:
    """
    Validate a section update for a variant and return column -> value.

    Only fields present in the input are returned, so a partial update
    leaves the rest of the section untouched.
    """
    model = SECTION_MODELS.get(section)
    if model is None:
        raise ValidationError(f"Unknown section '{section}'", {"sections": sorted(SECTION_MODELS)})
    if section in VARIANT_EXCLUDED_SECTIONS.get(variant, set()):
        raise ValidationError(f"{variant.label} courses have no '{section}' section")

    parsed = parse_input(model, data)
    values = parsed.model_dump(exclude_unset=True)
    excluded = VARIANT_EXCLUDED_FIELDS.get(variant, set()) & set(values)
    if excluded:
        raise ValidationError(
            f"Fields not supported for {variant.label} courses",
            {"fields": sorted(excluded)}
        )
    return {COLUMN_ALIASES.get(key, key): value for key, value in values.items()}
