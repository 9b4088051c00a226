"""SQLAlchemy models shared across all services."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import DDL, CheckConstraint, DateTime, Enum as SqlEnum, ForeignKey, String, Uuid, event
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .database import Base

EXCLUSION_CONSTRAINT_NAME = "reservations_no_overlap"


class UTCDateTime(TypeDecorator[datetime]):
    """Stores instants as UTC and always returns timezone-aware values."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect: Dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class ReservationStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class Car(Base):
    __tablename__ = "cars"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    make: Mapped[str] = mapped_column(String(100), index=True)
    model: Mapped[str] = mapped_column(String(100))
    license_plate: Mapped[str] = mapped_column(String(20), unique=True)

    reservations: Mapped[List["Reservation"]] = relationship(back_populates="car")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (CheckConstraint("end_time > start_time", name="reservations_valid_interval"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    car_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("cars.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    status: Mapped[ReservationStatus] = mapped_column(
        SqlEnum(ReservationStatus, name="reservation_status"), default=ReservationStatus.CONFIRMED
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    car: Mapped[Car] = relationship(back_populates="reservations")


# The store is the final arbiter of the exclusion invariant: PostgreSQL gets a
# gist exclusion constraint, SQLite gets triggers with the same predicate.
POSTGRES_EXCLUSION_DDL = (
    "ALTER TABLE reservations ADD CONSTRAINT {name} "
    "EXCLUDE USING gist (car_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&) "
    "WHERE (status = 'CONFIRMED')"
).format(name=EXCLUSION_CONSTRAINT_NAME)

_SQLITE_OVERLAP_PREDICATE = (
    "EXISTS (SELECT 1 FROM reservations r "
    "WHERE r.car_id = NEW.car_id AND r.status = 'CONFIRMED' "
    "AND r.start_time < NEW.end_time AND r.end_time > NEW.start_time{extra})"
)

SQLITE_EXCLUSION_TRIGGERS = (
    "CREATE TRIGGER IF NOT EXISTS {name}_insert BEFORE INSERT ON reservations "
    "WHEN NEW.status = 'CONFIRMED' "
    "BEGIN SELECT RAISE(ABORT, '{name}') WHERE {predicate}; END".format(
        name=EXCLUSION_CONSTRAINT_NAME, predicate=_SQLITE_OVERLAP_PREDICATE.format(extra="")
    ),
    "CREATE TRIGGER IF NOT EXISTS {name}_update BEFORE UPDATE OF status, start_time, end_time, car_id "
    "ON reservations WHEN NEW.status = 'CONFIRMED' "
    "BEGIN SELECT RAISE(ABORT, '{name}') WHERE {predicate}; END".format(
        name=EXCLUSION_CONSTRAINT_NAME, predicate=_SQLITE_OVERLAP_PREDICATE.format(extra=" AND r.id != NEW.id")
    ),
)

event.listen(
    Reservation.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Reservation.__table__,
    "after_create",
    DDL(POSTGRES_EXCLUSION_DDL).execute_if(dialect="postgresql"),
)
for _trigger in SQLITE_EXCLUSION_TRIGGERS:
    event.listen(Reservation.__table__, "after_create", DDL(_trigger).execute_if(dialect="sqlite"))
