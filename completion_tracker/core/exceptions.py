"""
Service-level exception hierarchy.

Services raise these types; blueprints translate them into HTTP responses
through ``completion_tracker.utils.errors.api_error``.

Usage:
    from completion_tracker.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Client", resource_id="acme-001")
    raise ValidationError("month must be between 1 and 12", details={"month": "13"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Client").
        resource_id: The key that was looked up.
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
    """Raised when input is well-formed but outside the accepted domain.

    Maps to HTTP 400 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class DataStoreError(Exception):
    """Raised when a read against the data store fails.

    Wraps the driver/ORM exception so callers do not depend on SQLAlchemy.
    The original exception is kept on ``__cause__`` and its text on
    ``detail`` for the 500 response body.
    """

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        msg = f"{operation} failed"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
