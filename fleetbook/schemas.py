"""Pydantic schemas shared across the services."""
from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

from .clock import ensure_utc
from .models import ReservationStatus

T = TypeVar("T")


class CarRead(BaseModel):
    id: uuid.UUID
    make: str
    model: str
    license_plate: str

    model_config = {"from_attributes": True}


class ReservationCreate(BaseModel):
    car_id: uuid.UUID
    user_id: uuid.UUID
    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ReservationRead(BaseModel):
    id: uuid.UUID
    car_id: uuid.UUID
    user_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    status: ReservationStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class Page(BaseModel, Generic[T]):
    items: List[T]
    page: int
    size: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, items: List[T], page: int, size: int, total: int) -> "Page[T]":
        return cls(items=items, page=page, size=size, total=total, total_pages=math.ceil(total / size) if size else 0)


class ErrorResponse(BaseModel):
    error: str
    message: str
    status: int
    timestamp: datetime
    path: str
    details: Optional[List[str]] = Field(default=None)
