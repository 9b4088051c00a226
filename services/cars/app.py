import logging
from contextlib import asynccontextmanager
from datetime import datetime

from circuitbreaker import circuit
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from fleetbook.cache import SimpleTTLCache, car_page_key
from fleetbook.clock import SystemClock, ensure_utc
from fleetbook.config import get_settings
from fleetbook.database import Base, engine
from fleetbook.dependencies import get_car_repository, get_reservation_policy
from fleetbook.error_handlers import apply_error_handlers
from fleetbook.logging_middleware import add_audit_middleware
from fleetbook.policy import ReservationPolicy
from fleetbook.rate_limit import apply_rate_limiter, limiter
from fleetbook.schemas import CarRead, Page
from fleetbook.store import CarRepository
from fleetbook.timeslot import validate_time_slot

API_V1_BASE = "/api/v1"
CARS_PATH = f"{API_V1_BASE}/cars"

settings = get_settings()
logger = logging.getLogger(__name__)
car_page_cache: SimpleTTLCache[Page[CarRead]] = SimpleTTLCache(ttl=settings.car_cache_ttl)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Cars Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    apply_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "cars")
    Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "cars"}


@app.get(CARS_PATH, response_model=Page[CarRead], tags=["cars"])
@circuit(failure_threshold=5, recovery_timeout=60)
def list_cars(
    request: Request,
    page: int = Query(0, ge=0, description="Page number (0-based)"),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    cars: CarRepository = Depends(get_car_repository),
) -> Page[CarRead]:
    cache_key = car_page_key(page, size)
    cached = car_page_cache.get(cache_key)
    if cached is not None:
        return cached

    logger.info("Retrieving cars page %s with size %s", page, size)
    items, total = cars.list_page(page, size)
    result = Page[CarRead].build([CarRead.model_validate(car) for car in items], page, size, total)
    car_page_cache.set(cache_key, result)
    return result


@app.get(f"{CARS_PATH}/available", response_model=Page[CarRead], tags=["cars"])
@limiter.limit("40/minute")
def list_available_cars(
    request: Request,
    start_time: datetime = Query(..., description="Start time (ISO 8601)"),
    end_time: datetime = Query(..., description="End time (ISO 8601)"),
    page: int = Query(0, ge=0, description="Page number (0-based)"),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    cars: CarRepository = Depends(get_car_repository),
    policy: ReservationPolicy = Depends(get_reservation_policy),
) -> Page[CarRead]:
    start, end = ensure_utc(start_time), ensure_utc(end_time)
    logger.info("Finding available cars from %s to %s, page %s size %s", start, end, page, size)
    validate_time_slot(start, end, SystemClock().now(), policy)

    items, total = cars.list_available_page(start, end, page, size)
    return Page[CarRead].build([CarRead.model_validate(car) for car in items], page, size, total)
