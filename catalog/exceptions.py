"""
catalog/exceptions.py
Typed exceptions for the course catalog core

Every error raised by the core derives from CatalogException so the host
service can map each kind to a distinct status code without inspecting
messages.
"""
from typing import Any, Dict, Optional


class CatalogException(Exception):
    """Base exception for the course catalog"""
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        if status_code:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(CatalogException):
    """
    Raised for malformed or missing input.

    Always raised before any store call, so a ValidationError never leaves
    a partial write behind.
    """
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Invalid input", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, self.status_code, details)


class NotFoundError(CatalogException):
    """
    Raised when a referenced entity does not exist.

    Soft-deleted courses are reported as not found on every default path.
    """
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", identifier: Any = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        self.resource = resource
        self.identifier = identifier
        super().__init__(message, self.status_code, {"resource": resource, "id": identifier})


class PublishGuardError(CatalogException):
    """
    Raised when a course cannot be made publicly available.

    Examples:
    - Missing description
    - No modules attached (online / free)
    - No batches attached (offline)
    """
    status_code = 409
    code = "PUBLISH_GUARD"

    def __init__(self, message: str = "Course is missing mandatory content", missing: Optional[list] = None):
        super().__init__(message, self.status_code, {"missing": missing or []})


class NotOpenError(CatalogException):
    """Raised when enrolling into an offline course whose enrollment is not Open."""
    status_code = 409
    code = "ENROLLMENT_NOT_OPEN"

    def __init__(self, course_id: Any, current_status: str):
        self.current_status = current_status
        super().__init__(
            f"Enrollment for course {course_id} is not open (status: {current_status})",
            self.status_code,
            {"course_id": course_id, "enrollment_status": current_status}
        )


class BatchFullError(CatalogException):
    """Raised when a batch has no seats left."""
    status_code = 409
    code = "BATCH_FULL"

    def __init__(self, batch_id: Any, max_student_count: Optional[int] = None):
        super().__init__(
            f"Batch {batch_id} is full",
            self.status_code,
            {"batch_id": batch_id, "max_student_count": max_student_count}
        )


class BatchNotFoundError(NotFoundError):
    """Raised when a batch is unknown or not attached to the course."""
    code = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: Any):
        super().__init__("Batch", batch_id)


class UniquenessError(CatalogException):
    """Raised when a write collides with a unique constraint (name, slug, offer code)."""
    status_code = 409
    code = "UNIQUENESS_VIOLATION"

    def __init__(self, message: str = "Duplicate value", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, self.status_code, details)


class OfferUnavailableError(CatalogException):
    """Raised when an offer is inactive, expired or out of seats."""
    status_code = 409
    code = "OFFER_UNAVAILABLE"

    def __init__(self, offer_id: Any, message: str = "Offer is not available"):
        super().__init__(message, self.status_code, {"offer_id": offer_id})


class StoreUnavailableError(CatalogException):
    """
    Raised when the underlying store fails or times out.

    Distinct from NotFoundError: the entity may well exist, the store could
    not answer.
    """
    status_code = 503
    code = "STORE_UNAVAILABLE"

    def __init__(self, message: str = "Course store is unavailable"):
        super().__init__(message, self.status_code)
