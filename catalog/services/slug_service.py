"""
catalog/services/slug_service.py
Slug and SEO default derivation

Pure functions; the course service calls them on create and whenever the
name changes. Slug collisions are left to the store's unique constraint.
"""
import re

from catalog.exceptions import ValidationError
from catalog.orm.course import Course

SEO_DESCRIPTION_LENGTH = 150

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def slugify(name: str) -> str:
    """
    Lowercase, drop anything but ASCII word characters / whitespace / hyphens,
    collapse whitespace and hyphen runs to a single hyphen, trim the ends.

    >>> slugify("Intro to Testing!!")
    'intro-to-testing'
    """
    slug = (name or "").lower()
    slug = _NON_SLUG_CHARS.sub("", slug)
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = _REPEATED_HYPHENS.sub("-", slug)
    return slug.strip("-")


def require_slug(name: str) -> str:
    """slugify, rejecting names that leave nothing behind."""
    slug = slugify(name)
    if not slug:
        raise ValidationError(
            "Course name must contain at least one letter or digit",
            {"name": name}
        )
    return slug


def default_meta_title(name: str, variant_label: str) -> str:
    return f"Learn {name} | {variant_label} Course"


def default_meta_description(description: str) -> str:
    return f"{description[:SEO_DESCRIPTION_LENGTH]}..."


def apply_seo_defaults(course: Course) -> Course:
    """Fill SEO meta title / description only where they are absent."""
    if not course.seo_meta_title and course.name:
        course.seo_meta_title = default_meta_title(course.name, course.course_variant.label)
    if not course.seo_meta_description and course.description:
        course.seo_meta_description = default_meta_description(course.description)
    return course
