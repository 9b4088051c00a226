"""Reservation cancellation: ownership and minimum notice."""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from .clock import Clock, SystemClock
from .errors import CancellationTooLate, NotFound, Unauthorized
from .models import Reservation, ReservationStatus
from .policy import ReservationPolicy
from .store import ReservationRepository

logger = logging.getLogger(__name__)


class CancellationEngine:
    def __init__(
        self,
        reservations: ReservationRepository,
        policy: Optional[ReservationPolicy] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._reservations = reservations
        self._policy = policy or ReservationPolicy()
        self._clock = clock or SystemClock()

    def cancel_booking(self, reservation_id: uuid.UUID, requester_id: uuid.UUID) -> Reservation:
        """Move a CONFIRMED reservation to CANCELLED.

        Cancelling an already cancelled reservation returns it unchanged.
        """
        logger.info("Cancelling reservation %s for user %s", reservation_id, requester_id)

        reservation = self._reservations.find_by_id(reservation_id)
        if reservation is None:
            raise NotFound(f"Reservation with ID {reservation_id} not found")
        if reservation.user_id != requester_id:
            raise Unauthorized(f"User {requester_id} is not authorized to cancel this reservation")
        if reservation.status == ReservationStatus.CANCELLED:
            return reservation

        remaining = reservation.start_time - self._clock.now()
        notice = self._policy.min_cancellation_notice
        if remaining < notice:
            raise CancellationTooLate(notice=notice, remaining=remaining)

        reservation.status = ReservationStatus.CANCELLED
        cancelled = self._reservations.save(reservation)
        logger.info("Successfully cancelled reservation %s", reservation_id)
        return cancelled
