"""Pydantic schemas for measurements and per-location statistics."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Location(str, Enum):
    """Sensor placements accepted on ingestion."""

    interior = "interior"
    exterior = "exterior"


class Temperature(BaseModel):
    # finite JSON numbers only; "21.5", Infinity and NaN are rejected
    value: float = Field(..., strict=True, allow_inf_nan=False)
    unit: str


class Humidity(BaseModel):
    value: float = Field(..., strict=True, allow_inf_nan=False)
    unit: str


class Measurement(BaseModel):
    """Reading pushed by a sensor; `timestamp` is always set by the server."""

    temperature: Temperature
    humidity: Humidity
    location: Location
    timestamp: Optional[datetime] = None


def _as_utc(value: datetime) -> datetime:
    # some drivers hand back naive datetimes for UTC columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MeasurementRecord(BaseModel):
    """Immutable snapshot of a stored row."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    temperature: float
    humidity: float
    location: str
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class CurrentReading(BaseModel):
    temperature: Optional[float] = None
    humidity: Optional[float] = None


class Averages(BaseModel):
    temperature: Optional[float] = None
    humidity: Optional[float] = None


class WindowStats(BaseModel):
    average: Averages
    min_temperature: Optional[float] = None
    max_temperature: Optional[float] = None


class LocationStatsResponse(BaseModel):
    """Nested statistics payload returned by `/stats`."""

    location: str
    current: CurrentReading
    daily: WindowStats = Field(..., description="Aggregates over the trailing 30 days.")


class LocationStats(BaseModel):
    """Flat statistics row for one location, as read from the store."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    location: str
    current_temperature: Optional[float] = None
    current_humidity: Optional[float] = None
    avg_temperature: Optional[float] = None
    avg_humidity: Optional[float] = None
    min_temperature: Optional[float] = None
    max_temperature: Optional[float] = None

    def to_response(self) -> LocationStatsResponse:
        return LocationStatsResponse(
            location=self.location,
            current=CurrentReading(
                temperature=self.current_temperature,
                humidity=self.current_humidity,
            ),
            daily=WindowStats(
                average=Averages(
                    temperature=self.avg_temperature,
                    humidity=self.avg_humidity,
                ),
                min_temperature=self.min_temperature,
                max_temperature=self.max_temperature,
            ),
        )
