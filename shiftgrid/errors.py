from __future__ import annotations


class SchedulingError(Exception):
    """Base class for failures surfaced to API callers as ``{code, message}``."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, *, code: str | None = None, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.field = field

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(SchedulingError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(SchedulingError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(SchedulingError):
    status_code = 409
    code = "CONFLICT"


class SlotLockedError(ConflictError):
    code = "SLOT_LOCKED"


class DependencyError(SchedulingError):
    status_code = 409
    code = "DEPENDENCY_ACTIVE"


class AuthenticationError(SchedulingError):
    status_code = 401
    code = "NOT_AUTHENTICATED"


class AuthorizationError(SchedulingError):
    status_code = 403
    code = "FORBIDDEN"


def describe_validation_errors(errors: list[dict]) -> tuple[str | None, str]:
    """Collapse pydantic error entries into a field path and a readable message."""
    if not errors:
        return None, "Invalid request"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(location) or None
    message = first.get("msg", "Invalid value")
    if field:
        message = f"{field}: {message}"
    return field, message
