"""Business rules for a requested reservation window."""
from __future__ import annotations

from datetime import datetime, timedelta

from .clock import ensure_utc
from .errors import InvalidRequest
from .policy import ReservationPolicy

INVALID_RESERVATION = "Invalid reservation"


def _hours(delta: timedelta) -> str:
    hours = delta.total_seconds() / 3600
    return f"{hours:g} hour" + ("" if hours == 1 else "s")


def validate_time_slot(start: datetime, end: datetime, now: datetime, policy: ReservationPolicy) -> None:
    """Raise ``InvalidRequest`` for the first rule ``[start, end)`` breaks.

    Rules are checked in order: start after ``now``, end after start, then the
    duration bounds from ``policy`` (both inclusive).
    """
    start, end, now = ensure_utc(start), ensure_utc(end), ensure_utc(now)

    if start <= now:
        raise InvalidRequest(f"{INVALID_RESERVATION}: Start time must be in the future")
    if end <= start:
        raise InvalidRequest(f"{INVALID_RESERVATION}: End time must be after start time")

    duration = end - start
    if duration < policy.min_duration:
        raise InvalidRequest(f"{INVALID_RESERVATION}: Reservation must be at least {_hours(policy.min_duration)}")
    if duration > policy.max_duration:
        raise InvalidRequest(f"{INVALID_RESERVATION}: Reservation cannot exceed {_hours(policy.max_duration)}")
