"""Translate engine failures into a uniform JSON error body."""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import ReservationError
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)


def _error_body(request: Request, code: str, message: str, status_code: int, details: Optional[List[str]] = None) -> JSONResponse:
    body = ErrorResponse(
        error=code,
        message=message,
        status=status_code,
        timestamp=datetime.now(timezone.utc),
        path=request.url.path,
        details=details,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s: %s", exc.code, exc.message, exc_info=exc.__cause__)
    else:
        logger.warning("%s: %s", exc.code, exc.message)
    return _error_body(request, exc.code, exc.message, exc.status_code, exc.details)


def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()]
    return _error_body(request, "VALIDATION_FAILED", "Request validation failed", status.HTTP_400_BAD_REQUEST, details)


def apply_error_handlers(app: FastAPI) -> None:
    """Register the shared exception handlers on an app."""

    app.add_exception_handler(ReservationError, reservation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
