"""
Tracker-wide exception hierarchy.

Services raise these canonical types; blueprints register handlers against
them once and map each to a consistent HTTP status code.

Usage:
    from tracker.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Sprint", resource_id=42)
    raise ValidationError("Feedback is required", details={"feedback": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Sprint", "Project").
        resource_id: The PK that was looked up. Included in logs and messages.
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
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint): the data
    was well-formed but violated a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidTransitionError(ValidationError):
    """Raised when an approval action is not legal from the current state.

    Maps to HTTP 409.

    Args:
        document_kind: Which tracked content was targeted (e.g. "sprint_plan").
        state: The effective approval state at the time of the call
               (``None`` when no content has been written yet).
        action: The attempted action ("approve" | "request_changes").
    """

    def __init__(self, document_kind: str, state: str | None, action: str) -> None:
        self.document_kind = document_kind
        self.state = state
        self.action = action
        label = state or "unwritten"
        super().__init__(
            f"Cannot {action.replace('_', ' ')} {document_kind}: current state is {label}",
            details={"state": state, "action": action},
        )


class PermissionDeniedError(Exception):
    """Raised when the acting user may not perform a reviewer action.

    Maps to HTTP 403.
    """
