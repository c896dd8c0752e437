# src/meteo_server/db.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from meteo_server.settings import DEFAULT_POOL_SIZE


class Base(DeclarativeBase):
    pass


@dataclass(frozen=True)
class Database:
    """Process-wide handle on the connection pool, shared by every request."""

    engine: Engine
    session_factory: sessionmaker

    @classmethod
    def from_engine(cls, engine: Engine) -> "Database":
        return cls(
            engine=engine,
            session_factory=sessionmaker(autocommit=False, autoflush=False, bind=engine),
        )

    def dispose(self) -> None:
        self.engine.dispose()


def build_engine(database_url: str, pool_size: int = DEFAULT_POOL_SIZE) -> Engine:
    # sqlite connections are handed between worker threads
    if make_url(database_url).get_backend_name() == "sqlite":
        connect_args = {"check_same_thread": False}
    else:
        connect_args = {"connect_timeout": 3}

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=0,
        connect_args=connect_args,
    )


def ensure_tables_exist(engine: Engine) -> None:
    """Create missing tables (safe to call repeatedly)."""
    from meteo_server import models  # noqa: F401  registers tables on Base

    Base.metadata.create_all(bind=engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Provide a database session per request from the app's pool."""
    database: Database = request.app.state.database
    db = database.session_factory()
    try:
        yield db
    finally:
        db.close()
