# src/meteo_server/models.py
from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, Index, Integer, String
from .db import Base


class Measurement(Base):
    __tablename__ = "measurements"

    id = Column(Integer, primary_key=True, index=True)

    temperature = Column(Float, nullable=False)
    humidity = Column(Float, nullable=False)

    # free-form on read; only "interior" / "exterior" are written by the API
    location = Column(String(32), nullable=False, index=True)

    # always UTC, assigned by the server on ingestion
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        Index("ix_measurements_location_timestamp", "location", "timestamp"),
    )
