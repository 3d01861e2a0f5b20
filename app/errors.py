"""
Error taxonomy for the booking service.

Every error carries the HTTP status it maps to and an optional `extra` dict
that is merged into the JSON error body next to `success` and `error`.
"""

from __future__ import annotations

from typing import Any

from fastapi import status


class BookingError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        extra: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, **self.extra}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ValidationError(BookingError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BookingError):
    """The request collides with existing state (e.g. overlapping dates)."""

    status_code = status.HTTP_409_CONFLICT


class ReviewExistsError(ConflictError):
    # Kept at 400 for compatibility with existing clients of DELETE /bookings/{id}
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Cannot delete booking with existing review"):
        super().__init__(message)


class InvalidTransitionError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, current: str, attempted: str, allowed: list[str]) -> None:
        super().__init__(
            f"Invalid status transition from {current} to {attempted}",
            extra={
                "currentStatus": current,
                "attemptedStatus": attempted,
                "allowedTransitions": allowed,
            },
        )
        self.current = current
        self.attempted = attempted
        self.allowed = allowed


class InternalError(BookingError):
    """Store or infrastructure failure. Only the generic message is public."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal server error", *, detail: str | None = None):
        super().__init__(message)
        self.detail = detail


class UpstreamServiceError(InternalError):
    status_code = status.HTTP_502_BAD_GATEWAY
