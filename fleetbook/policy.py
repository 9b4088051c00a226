"""Tunables consumed by the admission and cancellation engines."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .config import Settings, get_settings


@dataclass(frozen=True)
class ReservationPolicy:
    max_attempts: int = 3
    base_backoff: timedelta = timedelta(milliseconds=100)
    min_duration: timedelta = timedelta(hours=2)
    max_duration: timedelta = timedelta(hours=24)
    min_cancellation_notice: timedelta = timedelta(minutes=30)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.min_duration > self.max_duration:
            raise ValueError("min_duration cannot exceed max_duration")

    def backoff_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""

        return self.base_backoff.total_seconds() * attempt

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ReservationPolicy":
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.reservation_max_attempts,
            base_backoff=timedelta(milliseconds=settings.reservation_base_backoff_ms),
            min_duration=timedelta(minutes=settings.reservation_min_duration_minutes),
            max_duration=timedelta(minutes=settings.reservation_max_duration_minutes),
            min_cancellation_notice=timedelta(minutes=settings.cancellation_notice_minutes),
        )
