"""Store access for cars and reservations.

Every public method opens its own session, so one call is one transaction.
Nothing read here is cached between calls.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from sqlalchemy import exists, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .db_errors import WriteStatus, classify_db_error
from .errors import ResourceNotFound, ServiceUnavailable
from .models import Car, Reservation, ReservationStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteOutcome:
    status: WriteStatus
    reservation: Optional[Reservation] = None
    error: Optional[SQLAlchemyError] = None

    @property
    def created(self) -> bool:
        return self.status is WriteStatus.CREATED


def _overlap_filter(car_id: uuid.UUID, start: datetime, end: datetime):  # type: ignore[no-untyped-def]
    return (
        Reservation.car_id == car_id,
        Reservation.status == ReservationStatus.CONFIRMED,
        Reservation.start_time < end,
        Reservation.end_time > start,
    )


class _Repository:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _read(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Store read failed: %s", exc.__class__.__name__)
            raise ServiceUnavailable("Database temporarily unavailable. Please try again later.") from exc


class CarRepository(_Repository):
    def exists(self, car_id: uuid.UUID) -> bool:
        with self._read() as session:
            return bool(session.scalar(select(exists().where(Car.id == car_id))))

    def get(self, car_id: uuid.UUID) -> Car:
        with self._read() as session:
            car = session.get(Car, car_id)
        if car is None:
            raise ResourceNotFound(f"Car with ID {car_id} not found")
        return car

    def list_page(self, page: int, size: int) -> Tuple[List[Car], int]:
        with self._read() as session:
            total = session.scalar(select(func.count(Car.id))) or 0
            cars = session.scalars(
                select(Car).order_by(Car.make, Car.model, Car.license_plate).offset(page * size).limit(size)
            ).all()
        return list(cars), total

    def list_available_page(self, start: datetime, end: datetime, page: int, size: int) -> Tuple[List[Car], int]:
        busy = (
            select(Reservation.id)
            .where(
                Reservation.car_id == Car.id,
                Reservation.status == ReservationStatus.CONFIRMED,
                Reservation.start_time < end,
                Reservation.end_time > start,
            )
            .exists()
        )
        with self._read() as session:
            total = session.scalar(select(func.count(Car.id)).where(~busy)) or 0
            cars = session.scalars(
                select(Car)
                .where(~busy)
                .order_by(Car.make, Car.model, Car.license_plate)
                .offset(page * size)
                .limit(size)
            ).all()
        return list(cars), total


class ReservationRepository(_Repository):
    def has_overlap(self, car_id: uuid.UUID, start: datetime, end: datetime) -> bool:
        """True if a CONFIRMED reservation on the car intersects ``[start, end)``."""

        with self._read() as session:
            return bool(session.scalar(select(exists().where(*_overlap_filter(car_id, start, end)))))

    def insert_confirmed(self, reservation: Reservation) -> WriteOutcome:
        reservation.status = ReservationStatus.CONFIRMED
        session = self._session_factory()
        try:
            session.add(reservation)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            outcome = classify_db_error(exc)
            logger.debug("Insert for car %s rejected by store: %s", reservation.car_id, outcome.value)
            return WriteOutcome(status=outcome, error=exc)
        finally:
            session.close()
        return WriteOutcome(status=WriteStatus.CREATED, reservation=reservation)

    def find_by_id(self, reservation_id: uuid.UUID) -> Optional[Reservation]:
        with self._read() as session:
            return session.get(Reservation, reservation_id)

    def save(self, reservation: Reservation) -> Reservation:
        try:
            with self._session_factory() as session:
                merged = session.merge(reservation)
                session.commit()
        except SQLAlchemyError as exc:
            logger.error("Store write failed for reservation %s: %s", reservation.id, exc.__class__.__name__)
            raise ServiceUnavailable("Database temporarily unavailable. Please try again later.") from exc
        return merged
