"""Error taxonomy shared by every taskboard component.

Each error carries a stable machine-readable ``code`` and the HTTP status the
REST layer maps it to.  Services raise these; nothing in the core swallows
them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TypeVar

E = TypeVar("E", bound=Enum)


class TaskboardError(Exception):
    """Base class for all caller-visible taskboard failures."""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class NotFound(TaskboardError):
    status_code = 404
    default_code = "NOT_FOUND"


class AccessDenied(TaskboardError):
    status_code = 403
    default_code = "ACCESS_DENIED"


class ValidationFailure(TaskboardError):
    status_code = 400
    default_code = "VALIDATION_FAILED"


class InvalidState(TaskboardError):
    status_code = 409
    default_code = "INVALID_STATE"


class ConcurrencyConflict(TaskboardError):
    status_code = 409
    default_code = "CONCURRENCY_CONFLICT"


class AuthenticationRequired(TaskboardError):
    status_code = 401
    default_code = "AUTHENTICATION_REQUIRED"


class StorageUnavailable(TaskboardError):
    status_code = 500
    default_code = "STORAGE_UNAVAILABLE"


def task_not_found(task_id: str) -> NotFound:
    return NotFound(f"Task {task_id} not found", "TASK_NOT_FOUND", {"task_id": task_id})


def board_not_found(board_id: str) -> NotFound:
    return NotFound(f"Board {board_id} not found", "BOARD_NOT_FOUND", {"board_id": board_id})


def require_length(field_name: str, value: str, minimum: int, maximum: int) -> str:
    """Return *value* stripped, or raise if its length is outside the bounds."""
    text = (value or "").strip()
    if not minimum <= len(text) <= maximum:
        raise ValidationFailure(
            f"'{field_name}' must be {minimum}-{maximum} characters",
            details={"field": field_name, "length": len(text)},
        )
    return text


def require_choice(field_name: str, enum_cls: type[E], raw: Any) -> E:
    """Coerce *raw* into *enum_cls* or raise :class:`ValidationFailure`."""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        allowed = ", ".join(str(m.value) for m in enum_cls)
        raise ValidationFailure(
            f"'{field_name}' must be one of: {allowed}",
            details={"field": field_name, "value": raw},
        ) from None
