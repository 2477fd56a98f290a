from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import get_current_actor, require_admin
from clinic_scheduler.core.clock import Clock
from clinic_scheduler.models.booking import Booking
from clinic_scheduler.models.enums import BookingStatus, BusinessStatus, Modality
from clinic_scheduler.routes.dependencies import (
    ensure_database_ready,
    get_clock,
    get_db,
    get_locks,
    get_meeting_link_provider,
    translate_errors,
)
from clinic_scheduler.scheduling.locks import OccupancyLocks
from clinic_scheduler.scheduling.meeting_links import MeetingLinkProvider
from clinic_scheduler.scheduling.reservations import Actor, ReservationManager, get_booking
from clinic_scheduler.scheduling.status import BookingStatusService
from clinic_scheduler.scheduling.timeutil import format_minutes, parse_minutes

router = APIRouter(tags=['bookings'])

MAX_BOOKING_NOTES_LENGTH = 600


class CreateBookingRequest(BaseModel):
    service_id: int
    date: date
    start_time: int
    modality: Modality
    notes: str | None = None

    @field_validator('start_time', mode='before')
    @classmethod
    def validate_start_time(cls, value):
        return parse_minutes(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_BOOKING_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_BOOKING_NOTES_LENGTH} characters or fewer.')

        return normalized


class UpdateStatusRequest(BaseModel):
    status: BookingStatus


class UpdateBusinessStatusRequest(BaseModel):
    business_status: BusinessStatus


class BookingResponse(BaseModel):
    id: int
    subject_id: str
    service_id: int
    date: date
    start_time: str
    end_time: str
    duration_minutes: int
    modality: Modality
    status: BookingStatus
    business_status: BusinessStatus
    reschedule_count: int = Field(ge=0)
    original_date: date | None = None
    original_time: str | None = None
    rescheduled_by: str | None = None
    rescheduled_at: datetime | None = None
    meeting_link: str | None = None
    notes: str | None = None


def to_booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        subject_id=booking.subject_id,
        service_id=booking.service_id,
        date=booking.booking_date,
        start_time=format_minutes(booking.start_minute),
        end_time=format_minutes(booking.end_minute),
        duration_minutes=booking.duration_minutes,
        modality=Modality(booking.modality),
        status=BookingStatus(booking.status),
        business_status=BusinessStatus(booking.business_status),
        reschedule_count=booking.reschedule_count,
        original_date=booking.original_date,
        original_time=format_minutes(booking.original_start_minute) if booking.original_start_minute is not None else None,
        rescheduled_by=booking.rescheduled_by,
        rescheduled_at=booking.rescheduled_at,
        meeting_link=booking.meeting_link,
        notes=booking.notes,
    )


def ensure_can_view(booking: Booking, actor: Actor) -> None:
    if not actor.is_admin and booking.subject_id != actor.identity:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the patient who booked this appointment can view it.',
        )


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    clock: Clock = Depends(get_clock),
    locks: OccupancyLocks = Depends(get_locks),
):
    ensure_database_ready()

    with translate_errors(db):
        booking = ReservationManager(db, clock=clock, locks=locks).reserve(
            subject_id=actor.identity,
            service_id=data.service_id,
            on_date=data.date,
            start_minute=data.start_time,
            modality=data.modality,
            notes=data.notes,
        )
        return to_booking_response(booking)


@router.get('', response_model=list[BookingResponse])
def list_bookings(
    booking_date: date | None = Query(default=None, alias='date'),
    booking_status: BookingStatus | None = Query(default=None, alias='status'),
    subject_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    ensure_database_ready()

    # Patients only ever see their own bookings.
    if not actor.is_admin:
        subject_id = actor.identity

    with translate_errors(db):
        bookings = ReservationManager(db).list_bookings(
            subject_id=subject_id,
            on_date=booking_date,
            status=booking_status.value if booking_status else None,
        )
        return [to_booking_response(booking) for booking in bookings]


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking_details(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    ensure_database_ready()

    with translate_errors(db):
        booking = get_booking(db, booking_id)
        ensure_can_view(booking, actor)
        return to_booking_response(booking)


@router.post('/{booking_id}/cancel', response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    locks: OccupancyLocks = Depends(get_locks),
):
    ensure_database_ready()

    with translate_errors(db):
        booking = ReservationManager(db, locks=locks).cancel(booking_id, actor)
        return to_booking_response(booking)


@router.patch('/{booking_id}/status', response_model=BookingResponse)
def update_booking_status(
    booking_id: int,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
    _admin: Actor = Depends(require_admin),
    meeting_links: MeetingLinkProvider | None = Depends(get_meeting_link_provider),
):
    ensure_database_ready()

    with translate_errors(db):
        booking = BookingStatusService(db, meeting_links).update_status(booking_id, data.status)
        return to_booking_response(booking)


@router.patch('/{booking_id}/business-status', response_model=BookingResponse)
def update_booking_business_status(
    booking_id: int,
    data: UpdateBusinessStatusRequest,
    db: Session = Depends(get_db),
    _admin: Actor = Depends(require_admin),
):
    ensure_database_ready()

    with translate_errors(db):
        booking = BookingStatusService(db).update_business_status(booking_id, data.business_status)
        return to_booking_response(booking)
