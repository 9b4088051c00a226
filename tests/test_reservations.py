import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from fleetbook.admission import AdmissionEngine
from fleetbook.database import SessionLocal
from fleetbook.dependencies import get_admission_engine
from fleetbook.errors import ServiceUnavailable
from fleetbook.models import Reservation
from services.reservations.app import RESERVATIONS_PATH, app as reservations_app


def future(hours: float = 1) -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def reservation_body(car_id, user_id, start: datetime, hours: float = 2) -> dict:
    return {
        "car_id": str(car_id),
        "user_id": str(user_id),
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=hours)).isoformat(),
    }


def reservation_count() -> int:
    with SessionLocal() as session:
        return session.scalar(select(func.count(Reservation.id)))


class TestCreateReservation:
    """POST /api/v1/reservations"""

    def test_create_on_free_car(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        response = reservations_client.post(
            RESERVATIONS_PATH,
            json=reservation_body(car.id, user_id, future(1)),
            headers=auth_header(user_id),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "CONFIRMED"
        assert data["car_id"] == str(car.id)
        assert data["user_id"] == str(user_id)
        assert uuid.UUID(data["id"])
        assert data["created_at"]

    def test_token_required(self, reservations_client, make_car, user_id):
        car = make_car()
        response = reservations_client.post(RESERVATIONS_PATH, json=reservation_body(car.id, user_id, future(1)))
        assert response.status_code == 401

    def test_cannot_book_for_someone_else(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        response = reservations_client.post(
            RESERVATIONS_PATH,
            json=reservation_body(car.id, uuid.uuid4(), future(1)),
            headers=auth_header(user_id),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "UNAUTHORIZED"
        assert reservation_count() == 0

    def test_start_in_the_past(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        start = datetime.now(timezone.utc) - timedelta(seconds=1)
        response = reservations_client.post(
            RESERVATIONS_PATH,
            json=reservation_body(car.id, user_id, start),
            headers=auth_header(user_id),
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "INVALID_RESERVATION"
        assert "start time must be in the future" in body["message"].lower()
        assert body["path"] == RESERVATIONS_PATH
        assert reservation_count() == 0

    def test_too_short(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        response = reservations_client.post(
            RESERVATIONS_PATH,
            json=reservation_body(car.id, user_id, future(1), hours=1),
            headers=auth_header(user_id),
        )

        assert response.status_code == 400
        assert "at least 2 hours" in response.json()["message"]

    def test_unknown_car(self, reservations_client, user_id, auth_header):
        response = reservations_client.post(
            RESERVATIONS_PATH,
            json=reservation_body(uuid.uuid4(), user_id, future(1)),
            headers=auth_header(user_id),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "CAR_NOT_FOUND"

    def test_overlapping_request_rejected(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        start = future(1)
        first = reservations_client.post(
            RESERVATIONS_PATH, json=reservation_body(car.id, user_id, start, hours=3), headers=auth_header(user_id)
        )
        assert first.status_code == 201

        other = uuid.uuid4()
        second = reservations_client.post(
            RESERVATIONS_PATH,
            json=reservation_body(car.id, other, start + timedelta(hours=1), hours=3),
            headers=auth_header(other),
        )

        assert second.status_code == 409
        assert second.json()["error"] == "CAR_UNAVAILABLE"
        assert reservation_count() == 1

    def test_back_to_back_reservations(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        start = future(1)
        first = reservations_client.post(
            RESERVATIONS_PATH, json=reservation_body(car.id, user_id, start), headers=auth_header(user_id)
        )
        second = reservations_client.post(
            RESERVATIONS_PATH,
            json=reservation_body(car.id, user_id, start + timedelta(hours=2)),
            headers=auth_header(user_id),
        )

        assert first.status_code == 201
        assert second.status_code == 201

    def test_same_window_on_another_car(self, reservations_client, make_car, user_id, auth_header):
        first_car, second_car = make_car(), make_car()
        start = future(1)
        for car in (first_car, second_car):
            response = reservations_client.post(
                RESERVATIONS_PATH, json=reservation_body(car.id, user_id, start), headers=auth_header(user_id)
            )
            assert response.status_code == 201

    def test_cancelled_slot_can_be_rebooked(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        start = future(2)
        created = reservations_client.post(
            RESERVATIONS_PATH, json=reservation_body(car.id, user_id, start), headers=auth_header(user_id)
        ).json()
        reservations_client.delete(f"{RESERVATIONS_PATH}/{created['id']}", headers=auth_header(user_id))

        other = uuid.uuid4()
        response = reservations_client.post(
            RESERVATIONS_PATH, json=reservation_body(car.id, other, start), headers=auth_header(other)
        )
        assert response.status_code == 201

    def test_malformed_body(self, reservations_client, user_id, auth_header):
        response = reservations_client.post(
            RESERVATIONS_PATH,
            json={"car_id": "not-a-uuid", "user_id": str(user_id)},
            headers=auth_header(user_id),
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_FAILED"
        assert body["details"]

    def test_store_outage_is_service_unavailable(self, reservations_client, user_id, auth_header):
        class UnreachableCars:
            def exists(self, car_id):
                raise ServiceUnavailable("Database temporarily unavailable. Please try again later.")

        reservations_app.dependency_overrides[get_admission_engine] = lambda: AdmissionEngine(
            UnreachableCars(), None, sleep=lambda _: None
        )
        try:
            response = reservations_client.post(
                RESERVATIONS_PATH,
                json=reservation_body(uuid.uuid4(), user_id, future(1)),
                headers=auth_header(user_id),
            )
        finally:
            reservations_app.dependency_overrides.pop(get_admission_engine, None)

        assert response.status_code == 503
        assert response.json()["error"] == "DATABASE_ERROR"


class TestCancelReservation:
    """DELETE /api/v1/reservations/{id}"""

    def _create(self, client, car_id, user_id, headers, start: datetime) -> dict:
        response = client.post(RESERVATIONS_PATH, json=reservation_body(car_id, user_id, start), headers=headers)
        assert response.status_code == 201
        return response.json()

    def test_cancel_own_reservation(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        created = self._create(reservations_client, car.id, user_id, auth_header(user_id), future(2))

        response = reservations_client.delete(f"{RESERVATIONS_PATH}/{created['id']}", headers=auth_header(user_id))

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["start_time"] == created["start_time"]

    def test_cancel_twice_returns_same_reservation(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        created = self._create(reservations_client, car.id, user_id, auth_header(user_id), future(2))
        path = f"{RESERVATIONS_PATH}/{created['id']}"

        first = reservations_client.delete(path, headers=auth_header(user_id))
        second = reservations_client.delete(path, headers=auth_header(user_id))

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json() == first.json()

    def test_cancel_someone_elses_reservation(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        created = self._create(reservations_client, car.id, user_id, auth_header(user_id), future(2))

        response = reservations_client.delete(f"{RESERVATIONS_PATH}/{created['id']}", headers=auth_header(uuid.uuid4()))

        assert response.status_code == 403
        assert response.json()["error"] == "UNAUTHORIZED"

    def test_cancel_unknown_reservation(self, reservations_client, user_id, auth_header):
        response = reservations_client.delete(f"{RESERVATIONS_PATH}/{uuid.uuid4()}", headers=auth_header(user_id))

        assert response.status_code == 404
        assert response.json()["error"] == "RESERVATION_NOT_FOUND"

    def test_cancel_too_late(self, reservations_client, make_car, user_id, auth_header):
        car = make_car()
        created = self._create(reservations_client, car.id, user_id, auth_header(user_id), future(10 / 60))

        response = reservations_client.delete(f"{RESERVATIONS_PATH}/{created['id']}", headers=auth_header(user_id))

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "CANCELLATION_TOO_LATE"
        assert "30 minutes" in body["message"]
        assert any(detail.startswith("remaining_seconds=") for detail in body["details"])


def test_health(reservations_client):
    response = reservations_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "reservations"}
