"""
StudyHub Backend - Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for every failure the API reports.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) turn them into
       structured JSON error responses with the matching HTTP status code.
Who:   Raised by the validation layer, the link canonicalizer, the store
       adapters and the material controller; caught by the global handlers.

Exception Hierarchy:
    StudyHubError (base)
    ├── ValidationError          → 400 Bad Request
    │   └── InvalidAssetLinkError→ 400 Bad Request (thumbnail is not a drive link)
    ├── NotFoundError            → 404 Not Found
    ├── DuplicateMaterialError   → 409 Conflict
    ├── StoreFailureError        → 500 Internal Server Error
    └── RateLimitExceededError   → 429 Too Many Requests

Propagation:
    Validation and canonicalization errors are raised before any persistence
    call. Duplicate-key violations caught in the store are re-raised as
    DuplicateMaterialError so the pre-check and the storage constraint look
    identical to callers. Every other database error becomes a
    StoreFailureError with the original exception chained.
"""

from typing import Any, Dict, Optional


class StudyHubError(Exception):
    """
    Base exception for all StudyHub application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only where the
                  handler explicitly includes it)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(StudyHubError):
    """
    Raised when a request payload, path or query value breaks a rule.

    HTTP:    400 Bad Request
    Message: The message of the first violated rule, e.g.
             "Semester must be between 1 and 8".

    Example response:
        {
            "error": "validation_error",
            "message": "Semester must be between 1 and 8",
            "details": {"field": "semester"}
        }
    """

    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class InvalidAssetLinkError(ValidationError):
    """
    Raised when a thumbnail URL does not reference a file on the drive service.

    HTTP:    400 Bad Request
    When:    Create (always) and update (when a thumbnail is supplied).

    It is a ValidationError so that every "reject before persisting" path is
    handled the same way, but it reports its own error code.
    """

    error_code = "invalid_asset_link"

    def __init__(
        self,
        message: str = "Invalid Google Drive URL format",
        field: Optional[str] = "thumbnail",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field=field, context=context)


class NotFoundError(StudyHubError):
    """
    Raised when an identifier does not resolve to a stored record.

    HTTP:    404 Not Found
    When:    Unknown material id, or an upvote from an email that has no
             verified user record (both cases share this outcome).
    """

    def __init__(
        self,
        message: Optional[str] = None,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class DuplicateMaterialError(StudyHubError):
    """
    Raised when a material link is already taken by another material.

    HTTP:    409 Conflict
    When:    The create pre-check finds the link, or the database unique
             constraint on materials.material_link rejects an insert/update
             (a concurrent writer won the race).
    """

    def __init__(
        self,
        message: str = "Material with this link already exists",
        material_link: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if material_link:
            ctx["material_link"] = material_link
        super().__init__(message=message, context=ctx)
        self.material_link = material_link


class StoreFailureError(StudyHubError):
    """
    Raised when a database operation fails for any reason other than a
    recognized link conflict.

    HTTP:    500 Internal Server Error

    The client always receives a generic message. The exception type of the
    underlying driver error is kept in `context` and the original exception
    is chained (`raise ... from exc`) for the server-side log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(StudyHubError):
    """
    Raised when a client exceeds the per-IP request budget.

    HTTP:    429 Too Many Requests
    Response carries a Retry-After header with the seconds until a slot frees up.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
