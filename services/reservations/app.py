import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from fleetbook.admission import AdmissionEngine
from fleetbook.cancellation import CancellationEngine
from fleetbook.config import get_settings
from fleetbook.database import Base, engine
from fleetbook.dependencies import get_admission_engine, get_cancellation_engine, get_requester_id
from fleetbook.error_handlers import apply_error_handlers
from fleetbook.logging_middleware import add_audit_middleware
from fleetbook.models import Reservation
from fleetbook.rate_limit import apply_rate_limiter, limiter
from fleetbook.schemas import ReservationCreate, ReservationRead

API_V1_BASE = "/api/v1"
RESERVATIONS_PATH = f"{API_V1_BASE}/reservations"

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Reservations Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    apply_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "reservations")
    Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "reservations"}


@app.post(RESERVATIONS_PATH, response_model=ReservationRead, status_code=status.HTTP_201_CREATED, tags=["reservations"])
@limiter.limit("20/minute")
def create_reservation(
    request: Request,
    reservation_in: ReservationCreate,
    requester_id: uuid.UUID = Depends(get_requester_id),
    admission: AdmissionEngine = Depends(get_admission_engine),
) -> Reservation:
    logger.info(
        "Creating reservation for user %s - car: %s, period: %s to %s",
        reservation_in.user_id,
        reservation_in.car_id,
        reservation_in.start_time,
        reservation_in.end_time,
    )
    return admission.create_booking(
        car_id=reservation_in.car_id,
        requester_id=requester_id,
        owner_id=reservation_in.user_id,
        start=reservation_in.start_time,
        end=reservation_in.end_time,
    )


@app.delete(f"{RESERVATIONS_PATH}/{{reservation_id}}", response_model=ReservationRead, tags=["reservations"])
@limiter.limit("20/minute")
def cancel_reservation(
    request: Request,
    reservation_id: uuid.UUID,
    requester_id: uuid.UUID = Depends(get_requester_id),
    cancellation: CancellationEngine = Depends(get_cancellation_engine),
) -> Reservation:
    return cancellation.cancel_booking(reservation_id, requester_id)
