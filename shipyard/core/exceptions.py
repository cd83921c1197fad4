"""
Console-wide exception hierarchy.

Services raise these types; the app factory registers one handler per type
so every blueprint gets consistent HTTP status codes and JSON bodies.

Usage:
    from shipyard.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="WorkOrder", resource_id=42)
    raise ValidationError("progress_percentage must be 0-100",
                          details={"progress_percentage": 120})
"""


class NotFoundError(Exception):
    """Raised when a requested (non-deleted) resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "WorkOrder", "BASTP").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate an existing record.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | int | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class FetchError(Exception):
    """Raised when a view's data fetch fails as a whole.

    No partial results are produced; the caller keeps its last good
    snapshot and offers a manual retry. Maps to HTTP 503.

    Args:
        view: The view whose fetch failed (e.g. "dashboard").
        message: User-facing explanation.
    """

    def __init__(self, view: str, message: str = "Failed to load data") -> None:
        self.view = view
        # last good payload of the caller's own buffer, set by the view service
        self.snapshot = None
        super().__init__(message)


class FetchTimeoutError(FetchError):
    """Raised when a bounded fetch exceeds its wall-clock limit. Maps to HTTP 504."""

    def __init__(self, view: str, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(view, "Request timeout. Please try again.")
