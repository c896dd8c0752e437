from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from meteo_server.db import Database, build_engine, ensure_tables_exist
from meteo_server.main import create_app
from meteo_server.models import Measurement as MeasurementRow
from meteo_server.settings import Settings, get_settings


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'meteo.db'}",
        host="127.0.0.1",
        port=4350,
        pool_size=5,
        log_level="INFO",
        cors_origins=["*"],
        pid_file=None,
    )


@pytest.fixture
def database(settings: Settings) -> Iterator[Database]:
    db = Database.from_engine(build_engine(settings.database_url, settings.pool_size))
    ensure_tables_exist(db.engine)
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
def session(database: Database) -> Iterator[Session]:
    db = database.session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def seed(session: Session) -> Callable[..., MeasurementRow]:
    """Insert a row directly into the store, bypassing the API."""

    def _seed(
        location: str,
        temperature: float,
        humidity: float,
        timestamp: datetime,
    ) -> MeasurementRow:
        row = MeasurementRow(
            location=location,
            temperature=temperature,
            humidity=humidity,
            timestamp=timestamp,
        )
        session.add(row)
        session.commit()
        return row

    return _seed


@pytest.fixture
def api_client(settings: Settings, database: Database) -> Iterator[TestClient]:
    app = create_app(settings=settings, database=database)
    with TestClient(app) as client:
        yield client
