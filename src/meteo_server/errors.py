"""Error taxonomy shared by every request handler."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError


class ApiError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class DatabaseError(ApiError):
    """Raised when the measurement store fails."""

    def __init__(self, details: str):
        super().__init__(f"Database error: {details}")
        self.details = details

    @classmethod
    def from_exc(cls, exc: SQLAlchemyError) -> "DatabaseError":
        return cls(str(exc))


class ConfigError(ApiError):
    """Raised when configuration is missing or invalid."""

    def __init__(self, message: str):
        super().__init__(f"Configuration error: {message}")
        self.message = message


@contextmanager
def store_errors() -> Iterator[None]:
    """Convert store failures raised inside the block into DatabaseError.

    Covers SQLAlchemy errors and rows that fail to map onto a schema.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        raise DatabaseError.from_exc(exc) from exc
    except ValidationError as exc:
        raise DatabaseError(f"malformed row: {exc}") from exc


def error_response(exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})
