"""Database engine, session factory and declarative base."""
from typing import Any, Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # busy timeout (s): writers wait for the lock instead of failing fast
        return {"check_same_thread": False, "timeout": 30}
    return {}


def build_engine(url: str) -> Engine:
    db_engine = create_engine(url, connect_args=_connect_args(url), pool_pre_ping=not url.startswith("sqlite"))
    if db_engine.dialect.name == "sqlite":
        _use_immediate_transactions(db_engine)
    return db_engine


def _use_immediate_transactions(db_engine: Engine) -> None:
    """Take the SQLite write lock at BEGIN so concurrent writers queue up."""

    @event.listens_for(db_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(db_engine, "begin")
    def _begin_immediate(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_session_factory(db_engine: Engine) -> sessionmaker[Session]:
    # expire_on_commit=False so repositories can hand back detached rows
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


engine = build_engine(settings.database_url)
SessionLocal = build_session_factory(engine)

