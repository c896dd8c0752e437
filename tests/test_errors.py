from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from meteo_server.db import Database
from meteo_server.errors import ConfigError, DatabaseError, error_response, store_errors
from meteo_server.models import Measurement as MeasurementRow
from meteo_server.schemas import MeasurementRecord


def test_store_errors_wraps_sqlalchemy_failures() -> None:
    cause = OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(DatabaseError) as info:
        with store_errors():
            raise cause

    assert info.value.__cause__ is cause
    assert str(info.value).startswith("Database error: ")
    assert "connection refused" in str(info.value)


def test_store_errors_leaves_other_exceptions_alone() -> None:
    with pytest.raises(KeyError):
        with store_errors():
            raise KeyError("nope")


def test_error_response_shape() -> None:
    response = error_response(ConfigError("PORT must be a valid number"))

    assert response.status_code == 500
    assert json.loads(response.body) == {
        "error": "Configuration error: PORT must be a valid number"
    }


def test_store_failure_maps_to_500(api_client: TestClient, database: Database) -> None:
    MeasurementRow.__table__.drop(database.engine)

    for method, path, kwargs in (
        ("get", "/measurements", {}),
        ("get", "/measurements/interior", {}),
        ("get", "/stats", {}),
        (
            "post",
            "/push-measures",
            {
                "json": {
                    "temperature": {"value": 1.0, "unit": "C"},
                    "humidity": {"value": 2.0, "unit": "%"},
                    "location": "interior",
                }
            },
        ),
    ):
        response = getattr(api_client, method)(path, **kwargs)
        assert response.status_code == 500, path
        body = response.json()
        assert set(body) == {"error"}
        assert body["error"].startswith("Database error: ")


def test_store_errors_wraps_unmappable_rows() -> None:
    with pytest.raises(DatabaseError) as info:
        with store_errors():
            MeasurementRecord.model_validate(
                {"temperature": "warm", "humidity": 1.0, "location": "interior", "timestamp": None}
            )

    assert isinstance(info.value.__cause__, ValidationError)
    assert str(info.value).startswith("Database error: malformed row")


def test_unmappable_row_maps_to_500(api_client: TestClient, database: Database) -> None:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")
    with database.engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO measurements (temperature, humidity, location, timestamp) "
                "VALUES ('warm', 40.0, 'interior', :stamp)"
            ),
            {"stamp": stamp},
        )

    response = api_client.get("/measurements/interior")

    assert response.status_code == 500
    assert response.json()["error"].startswith("Database error: malformed row")
