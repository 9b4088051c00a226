"""HTTP audit logging middleware and engine log routing shared by services."""
from __future__ import annotations

import logging
from pathlib import Path
from time import time
from typing import Optional

from fastapi import FastAPI, Request

_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _file_handler(service_name: str) -> logging.Handler:
    _LOG_DIR.mkdir(exist_ok=True)
    handler = logging.FileHandler(_LOG_DIR / f"{service_name}.log")
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _build_logger(name: str, service_name: str, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.addHandler(_file_handler(service_name))
    return logger


def add_audit_middleware(app: FastAPI, service_name: str) -> None:
    """Log every request to ``logs/<service>.log`` and route engine logs there too."""

    logger = _build_logger(f"audit.{service_name}", service_name)
    _build_logger("fleetbook", service_name)

    @app.middleware("http")
    async def audit_logger(request: Request, call_next):  # type: ignore[override]
        start = time()
        response = await call_next(request)
        duration_ms = (time() - start) * 1000
        client_ip: Optional[str] = None
        if request.client:
            client_ip = request.client.host
        logger.info(
            "%s %s | status=%s | client=%s | duration=%.2fms",
            request.method,
            request.url.path,
            response.status_code,
            client_ip or "unknown",
            duration_ms,
        )
        return response
