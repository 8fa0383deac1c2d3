"""Domain exceptions raised by services and rendered by the API error handlers."""

from typing import Any, Optional


class ApiError(Exception):
    """Base error carrying an HTTP status and a client-facing message."""

    status_code: int = 400
    code: Optional[str] = None

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.code:
            body["code"] = self.code
        if self.details is not None:
            body["details"] = self.details
        return body


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any = None):
        suffix = f" with ID {entity_id}" if entity_id is not None else ""
        super().__init__(f"{entity}{suffix} not found")


class ValidationError(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"


class ForbiddenError(ApiError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    """State machine refused a move (requirement status or labour stage)."""

    code = "INVALID_TRANSITION"

    def __init__(self, message: str, current: Any = None, requested: Any = None):
        details = {}
        if current is not None:
            details["current"] = getattr(current, "value", current)
        if requested is not None:
            details["requested"] = getattr(requested, "value", requested)
        super().__init__(message, details=details or None)
