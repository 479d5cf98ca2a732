"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and turn them into the uniform result envelope with a consistent HTTP status.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="MeetingItem", resource_id=item_id)
    raise ValidationError("Validation failed", details={"topic": "This field is required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable model/entity name (e.g. "MeetingItem", "Document").
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
    """Raised when input fails field or business-rule validation.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class StateTransitionError(Exception):
    """Raised when an entity is not in a state that allows the operation.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, current: str, target: str | None = None,
                 reason: str | None = None) -> None:
        self.resource = resource
        self.current_status = current
        self.target_status = target
        if target:
            msg = f"Invalid status transition for {resource}: {current} → {target}"
        else:
            msg = f"{resource} cannot be changed in status {current}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class UnauthorizedError(Exception):
    """Raised when the caller is not identified. Maps to HTTP 401."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(Exception):
    """Raised when the caller is identified but not allowed. Maps to HTTP 403."""

    def __init__(self, message: str = "You are not authorized to perform this action") -> None:
        super().__init__(message)
