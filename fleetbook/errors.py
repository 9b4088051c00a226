"""Typed failures raised by the reservation engines."""
from __future__ import annotations

from datetime import timedelta
from typing import List, Optional

from fastapi import status


class ReservationError(Exception):
    """Base class; ``code`` and ``status_code`` drive the HTTP error body."""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequest(ReservationError):
    code = "INVALID_RESERVATION"
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(ReservationError):
    code = "UNAUTHORIZED"
    status_code = status.HTTP_403_FORBIDDEN


class ResourceNotFound(ReservationError):
    code = "CAR_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class NotFound(ReservationError):
    code = "RESERVATION_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ResourceUnavailable(ReservationError):
    code = "CAR_UNAVAILABLE"
    status_code = status.HTTP_409_CONFLICT


class CancellationTooLate(ReservationError):
    code = "CANCELLATION_TOO_LATE"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, notice: timedelta, remaining: timedelta) -> None:
        self.notice = notice
        self.remaining = remaining
        super().__init__(
            "Cancellation must be at least %d minutes before start time. "
            "Current time until start: %d minutes"
            % (notice.total_seconds() // 60, remaining.total_seconds() // 60),
            details=[
                f"notice_seconds={int(notice.total_seconds())}",
                f"remaining_seconds={int(remaining.total_seconds())}",
            ],
        )


class ServiceUnavailable(ReservationError):
    code = "DATABASE_ERROR"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
