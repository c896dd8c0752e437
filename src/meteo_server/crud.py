"""
src/meteo_server/crud.py

Query helpers for the measurements table.

Every read is bounded to the trailing window (WINDOW, 30 days) and returns
fresh pydantic snapshots, never ORM objects:

- list_measurements: rows in the window, oldest first (optionally one location)
- get_location_stats: latest reading + window aggregates per location

Store failures are raised as DatabaseError.
"""

from __future__ import annotations  # forward refs

import logging
from datetime import datetime, timedelta, timezone  # window arithmetic
from decimal import Decimal  # some drivers return AVG() as Decimal
from typing import Any, List, Optional  # typing

from sqlalchemy import and_, func, select  # SQL expression helpers
from sqlalchemy.exc import SQLAlchemyError  # base SQLAlchemy exception type
from sqlalchemy.orm import Session  # DB session

from .errors import store_errors  # store failures -> DatabaseError
from .models import Measurement as MeasurementRow  # ORM model
from .schemas import LocationStats, Measurement, MeasurementRecord  # API shapes

logger = logging.getLogger(__name__)

WINDOW = timedelta(days=30)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def window_start(now: Optional[datetime] = None) -> datetime:
    """Oldest timestamp still inside the trailing window."""
    return (now or utc_now()) - WINDOW


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, Decimal):
        return float(value)
    return value


def add_measurement(db: Session, measurement: Measurement) -> Measurement:
    """
    Insert one row for a timestamped measurement.

    Not idempotent: identical payloads produce distinct rows.
    """
    if measurement.timestamp is None:
        raise ValueError("measurement must be timestamped before it is stored")

    row = MeasurementRow(
        temperature=measurement.temperature.value,
        humidity=measurement.humidity.value,
        timestamp=measurement.timestamp,
        location=measurement.location.value,
    )

    with store_errors():
        try:
            db.add(row)
            db.commit()
        except SQLAlchemyError:
            db.rollback()  # leave the session usable for the caller
            raise

    logger.debug("Stored %s measurement at %s", row.location, measurement.timestamp.isoformat())
    return measurement


def list_measurements(
    db: Session,  # database session
    location: Optional[str] = None,  # exact match, not validated
    now: Optional[datetime] = None,  # reference time for the window
) -> List[MeasurementRecord]:
    """
    Fetch every measurement in the window, ascending by timestamp.

    No pagination: the window is the only bound on the result size.
    """
    q = select(MeasurementRow).where(MeasurementRow.timestamp >= window_start(now))

    if location is not None:  # apply location filter if provided
        q = q.where(MeasurementRow.location == location)

    q = q.order_by(MeasurementRow.timestamp.asc(), MeasurementRow.id.asc())  # stable ordering

    with store_errors():
        rows = db.scalars(q).all()
        return [MeasurementRecord.model_validate(r) for r in rows]


def get_location_stats(db: Session, now: Optional[datetime] = None) -> List[LocationStats]:
    """
    Compute current + window statistics per location in a single query.

    current:  the reading with the latest timestamp for the location
    window:   AVG(temperature), AVG(humidity), MIN/MAX(temperature) since window_start

    The two are inner-joined on location, so a location whose readings are all
    older than the window does not appear at all.
    """
    # Latest timestamp per location (over all time)
    latest = (
        select(
            MeasurementRow.location.label("location"),
            func.max(MeasurementRow.timestamp).label("max_timestamp"),
        )
        .group_by(MeasurementRow.location)
        .subquery("latest")
    )

    # The row(s) sitting on that latest timestamp
    current = (
        select(
            MeasurementRow.location.label("location"),
            MeasurementRow.temperature.label("current_temperature"),
            MeasurementRow.humidity.label("current_humidity"),
        )
        .select_from(MeasurementRow)
        .join(
            latest,
            and_(
                MeasurementRow.location == latest.c.location,
                MeasurementRow.timestamp == latest.c.max_timestamp,
            ),
        )
        .cte("current_measures")
    )

    # Aggregates restricted to the window
    window = (
        select(
            MeasurementRow.location.label("location"),
            func.avg(MeasurementRow.temperature).label("avg_temperature"),
            func.avg(MeasurementRow.humidity).label("avg_humidity"),
            func.min(MeasurementRow.temperature).label("min_temperature"),
            func.max(MeasurementRow.temperature).label("max_temperature"),
        )
        .where(MeasurementRow.timestamp >= window_start(now))
        .group_by(MeasurementRow.location)
        .cte("window_stats")
    )

    query = (
        select(
            current.c.location,
            current.c.current_temperature,
            current.c.current_humidity,
            window.c.avg_temperature,
            window.c.avg_humidity,
            window.c.min_temperature,
            window.c.max_temperature,
        )
        .join(window, current.c.location == window.c.location)
        .order_by(current.c.location.asc())
    )

    stats: List[LocationStats] = []
    seen = set()
    with store_errors():
        for r in db.execute(query).all():
            # several rows can share the latest timestamp; keep one per location
            if r.location in seen:
                continue
            seen.add(r.location)
            stats.append(
                LocationStats(
                    location=r.location,
                    current_temperature=_to_float(r.current_temperature),
                    current_humidity=_to_float(r.current_humidity),
                    avg_temperature=_to_float(r.avg_temperature),
                    avg_humidity=_to_float(r.avg_humidity),
                    min_temperature=_to_float(r.min_temperature),
                    max_temperature=_to_float(r.max_temperature),
                )
            )
    return stats
