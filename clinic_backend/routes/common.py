from contextlib import contextmanager

from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.core.errors import ClinicError, to_http_exception
from clinic_backend.database import ensure_schedule_schema

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int


def ensure_database_ready() -> None:
    try:
        ensure_schedule_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@contextmanager
def service_errors(db: Session):
    """Translate domain and storage errors raised by a service call into HTTP errors."""
    try:
        yield
    except ClinicError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc
