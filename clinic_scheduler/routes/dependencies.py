from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.core.clock import Clock, system_clock
from clinic_scheduler.core.errors import SchedulingError, scheduling_error_to_http
from clinic_scheduler.database import SessionLocal, ensure_booking_schema
from clinic_scheduler.scheduling.locks import OccupancyLocks, occupancy_locks
from clinic_scheduler.scheduling.meeting_links import MeetingLinkProvider, get_provider

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def ensure_database_ready() -> None:
    try:
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    return system_clock


def get_locks() -> OccupancyLocks:
    return occupancy_locks


def get_meeting_link_provider() -> MeetingLinkProvider | None:
    return get_provider()


@contextmanager
def translate_errors(db: Session) -> Iterator[None]:
    """Turn scheduling and database failures into HTTP responses."""
    try:
        yield
    except SchedulingError as exc:
        raise scheduling_error_to_http(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
