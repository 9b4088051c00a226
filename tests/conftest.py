import os
import uuid
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")

from fleetbook.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from fleetbook.auth import create_user_token  # noqa: E402
from fleetbook.database import Base, SessionLocal, engine  # noqa: E402
from fleetbook.models import Car  # noqa: E402
from fleetbook.store import CarRepository, ReservationRepository  # noqa: E402
from services.cars.app import app as cars_app  # noqa: E402
from services.cars.app import car_page_cache  # noqa: E402
from services.reservations.app import app as reservations_app  # noqa: E402


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    car_page_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def car_repository() -> CarRepository:
    return CarRepository(SessionLocal)


@pytest.fixture()
def reservation_repository() -> ReservationRepository:
    return ReservationRepository(SessionLocal)


@pytest.fixture()
def make_car(db_session) -> Callable[..., Car]:
    counter = {"n": 0}

    def _make_car(make: str = "Toyota", model: str = "Corolla", license_plate: str | None = None) -> Car:
        counter["n"] += 1
        car = Car(make=make, model=model, license_plate=license_plate or f"TEST-{counter['n']:04d}")
        db_session.add(car)
        db_session.commit()
        return car

    return _make_car


@pytest.fixture()
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def auth_header() -> Callable[[uuid.UUID], dict[str, str]]:
    def _auth_header(user: uuid.UUID) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_user_token(user)}"}

    return _auth_header


@pytest.fixture()
def reservations_client() -> Generator[TestClient, None, None]:
    with TestClient(reservations_app) as client:
        yield client


@pytest.fixture()
def cars_client() -> Generator[TestClient, None, None]:
    with TestClient(cars_app) as client:
        yield client
