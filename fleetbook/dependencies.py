"""Reusable FastAPI dependencies for identity and engine wiring."""
import uuid

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from .admission import AdmissionEngine
from .auth import requester_from_token
from .cancellation import CancellationEngine
from .clock import SystemClock
from .database import SessionLocal
from .policy import ReservationPolicy
from .store import CarRepository, ReservationRepository

# tokens are issued elsewhere; tokenUrl only feeds the OpenAPI docs
oauth_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_requester_id(token: str = Depends(oauth_scheme)) -> uuid.UUID:
    return requester_from_token(token)


def get_car_repository() -> CarRepository:
    return CarRepository(SessionLocal)


def get_reservation_repository() -> ReservationRepository:
    return ReservationRepository(SessionLocal)


def get_reservation_policy() -> ReservationPolicy:
    return ReservationPolicy.from_settings()


def get_admission_engine(
    cars: CarRepository = Depends(get_car_repository),
    reservations: ReservationRepository = Depends(get_reservation_repository),
    policy: ReservationPolicy = Depends(get_reservation_policy),
) -> AdmissionEngine:
    return AdmissionEngine(cars, reservations, policy=policy, clock=SystemClock())


def get_cancellation_engine(
    reservations: ReservationRepository = Depends(get_reservation_repository),
    policy: ReservationPolicy = Depends(get_reservation_policy),
) -> CancellationEngine:
    return CancellationEngine(reservations, policy=policy, clock=SystemClock())
