"""Reservation admission: validation, optimistic pre-check and a bounded write loop."""
from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from .clock import Clock, SystemClock, ensure_utc
from .db_errors import WriteStatus
from .errors import InvalidRequest, ResourceNotFound, ResourceUnavailable, ServiceUnavailable, Unauthorized
from .models import Reservation, ReservationStatus
from .policy import ReservationPolicy
from .store import CarRepository, ReservationRepository
from .timeslot import validate_time_slot

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Car is not available for the requested time slot. Another reservation overlaps."
PERSISTENT_CONFLICT_MESSAGE = (
    "Failed to create reservation due to persistent concurrency conflicts "
    "(e.g., deadlocks or serialization failures). Please try again later."
)


class AdmissionEngine:
    """Creates CONFIRMED reservations without ever letting two overlap.

    The overlap queries are only a fast path. The store's exclusion invariant
    decides at commit time, so a check that passed can still be rejected.
    Transient store conflicts and overlaps found on re-check share one budget
    of ``policy.max_attempts``.
    """

    def __init__(
        self,
        cars: CarRepository,
        reservations: ReservationRepository,
        policy: Optional[ReservationPolicy] = None,
        clock: Optional[Clock] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._cars = cars
        self._reservations = reservations
        self._policy = policy or ReservationPolicy()
        self._clock = clock or SystemClock()
        self._sleep = sleep

    def create_booking(
        self,
        car_id: uuid.UUID,
        requester_id: uuid.UUID,
        owner_id: uuid.UUID,
        start: datetime,
        end: datetime,
    ) -> Reservation:
        if requester_id != owner_id:
            raise Unauthorized(f"User {requester_id} is not authorized to create reservation for user {owner_id}")

        start, end = ensure_utc(start), ensure_utc(end)
        logger.info("Creating reservation for car %s from %s to %s", car_id, start, end)
        validate_time_slot(start, end, self._clock.now(), self._policy)

        if not self._cars.exists(car_id):
            raise ResourceNotFound(f"Car with ID {car_id} not found")

        if self._reservations.has_overlap(car_id, start, end):
            logger.info("Pre-check found an overlapping reservation for car %s", car_id)
            raise ResourceUnavailable(SLOT_TAKEN_MESSAGE)

        reservation = self._write_with_retry(car_id, owner_id, start, end)
        logger.info("Successfully created reservation with ID %s", reservation.id)
        return reservation

    def _write_with_retry(self, car_id: uuid.UUID, owner_id: uuid.UUID, start: datetime, end: datetime) -> Reservation:
        attempts = 0
        while True:
            if self._reservations.has_overlap(car_id, start, end):
                attempts += 1
                if attempts >= self._policy.max_attempts:
                    raise ResourceUnavailable(SLOT_TAKEN_MESSAGE)
                logger.debug("Overlap on re-check for car %s (attempt %d), backing off", car_id, attempts)
                self._backoff(attempts)
                continue

            outcome = self._reservations.insert_confirmed(
                Reservation(
                    car_id=car_id,
                    user_id=owner_id,
                    start_time=start,
                    end_time=end,
                    status=ReservationStatus.CONFIRMED,
                    created_at=self._clock.now(),
                )
            )
            if outcome.created and outcome.reservation is not None:
                return outcome.reservation

            if outcome.status is WriteStatus.EXCLUSION_VIOLATION:
                logger.info("Exclusion constraint rejected reservation for car %s", car_id)
                raise ResourceUnavailable(SLOT_TAKEN_MESSAGE) from outcome.error
            if outcome.status is WriteStatus.CONSTRAINT_VIOLATION:
                raise InvalidRequest("Reservation request violates database constraints") from outcome.error
            if outcome.status is WriteStatus.ACCESS_FAILURE:
                logger.error("Database access failure during reservation creation for car %s", car_id)
                raise ServiceUnavailable("Database temporarily unavailable. Please try again later.") from outcome.error

            attempts += 1
            if attempts >= self._policy.max_attempts:
                logger.error(
                    "Failed to create reservation after %d attempts due to concurrency issue", self._policy.max_attempts
                )
                raise ResourceUnavailable(PERSISTENT_CONFLICT_MESSAGE) from outcome.error
            logger.debug("Transient conflict on attempt %d for car %s, retrying", attempts, car_id)
            self._backoff(attempts)

    def _backoff(self, attempt: int) -> None:
        # an interrupt raised while sleeping propagates and aborts the booking
        self._sleep(self._policy.backoff_for(attempt))
