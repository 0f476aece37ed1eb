"""Domain errors raised by the use cases and rendered by the API."""
from __future__ import annotations

from typing import Any

WEEKEND_CONFIRMATION_NEEDED = "WEEKEND_CONFIRMATION_NEEDED"


class SchedulingError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message}


class ValidationError(SchedulingError):
    status_code = 400

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.errors:
            payload["errors"] = self.errors
        return payload


class NotFoundError(SchedulingError):
    status_code = 404


class ConflictError(SchedulingError):
    """The requested slot overlaps existing appointments."""
    status_code = 409

    def __init__(self, message: str, conflicting_ids: list[int] | None = None) -> None:
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message, "conflicts": self.conflicting_ids}


class WeekendConfirmationNeeded(SchedulingError):
    """Weekend slot that needs an explicit override from the user."""
    status_code = 422

    def __init__(self, message: str, day_type: str) -> None:
        super().__init__(message)
        self.day_type = day_type

    def to_payload(self) -> dict[str, Any]:
        return {"code": WEEKEND_CONFIRMATION_NEEDED, "message": self.message, "dayType": self.day_type}
