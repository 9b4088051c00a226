"""Classify driver errors by their structured codes, never by message text."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from sqlalchemy import exc as sa_exc

# PostgreSQL SQLSTATE values
PG_EXCLUSION_VIOLATION = "23P01"
PG_SERIALIZATION_FAILURE = "40001"
PG_DEADLOCK_DETECTED = "40P01"
PG_INTEGRITY_CLASS = "23"

# SQLite primary / extended result codes
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_CONSTRAINT = 19
SQLITE_CONSTRAINT_TRIGGER = SQLITE_CONSTRAINT | (7 << 8)


class WriteStatus(str, Enum):
    CREATED = "created"
    EXCLUSION_VIOLATION = "exclusion_violation"
    TRANSIENT_CONFLICT = "transient_conflict"
    CONSTRAINT_VIOLATION = "constraint_violation"
    ACCESS_FAILURE = "access_failure"


def _sqlstate(orig: object) -> Optional[str]:
    # psycopg2 exposes ``pgcode``, psycopg 3 exposes ``sqlstate``
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _sqlite_code(orig: object) -> Optional[int]:
    return getattr(orig, "sqlite_errorcode", None)


def classify_db_error(error: sa_exc.SQLAlchemyError) -> WriteStatus:
    """Map a failed write to the outcome the admission engine acts on."""

    if isinstance(error, sa_exc.TimeoutError):
        return WriteStatus.ACCESS_FAILURE
    if not isinstance(error, sa_exc.DBAPIError):
        return WriteStatus.ACCESS_FAILURE
    if error.connection_invalidated:
        return WriteStatus.ACCESS_FAILURE

    orig = error.orig
    sqlstate = _sqlstate(orig)
    if sqlstate is not None:
        if sqlstate == PG_EXCLUSION_VIOLATION:
            return WriteStatus.EXCLUSION_VIOLATION
        if sqlstate in (PG_SERIALIZATION_FAILURE, PG_DEADLOCK_DETECTED):
            return WriteStatus.TRANSIENT_CONFLICT
        if sqlstate.startswith(PG_INTEGRITY_CLASS):
            return WriteStatus.CONSTRAINT_VIOLATION
        return WriteStatus.ACCESS_FAILURE

    sqlite_code = _sqlite_code(orig)
    if sqlite_code is not None:
        # only the overlap triggers raise from inside a trigger body
        if sqlite_code == SQLITE_CONSTRAINT_TRIGGER:
            return WriteStatus.EXCLUSION_VIOLATION
        primary = sqlite_code & 0xFF
        if primary in (SQLITE_BUSY, SQLITE_LOCKED):
            return WriteStatus.TRANSIENT_CONFLICT
        if primary == SQLITE_CONSTRAINT:
            return WriteStatus.CONSTRAINT_VIOLATION
        return WriteStatus.ACCESS_FAILURE

    if isinstance(error, sa_exc.IntegrityError):
        return WriteStatus.CONSTRAINT_VIOLATION
    return WriteStatus.ACCESS_FAILURE
