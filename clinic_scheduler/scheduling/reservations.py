"""
Reservation manager.

A reservation is the authoritative occupancy check: the overlap test and
the insert run in one transaction while the ``(date, modality)`` key is
locked, so two overlapping requests can never both commit.
"""

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.core.clock import Clock, system_clock
from clinic_scheduler.core.errors import NotFound, OutsideWorkingHours, PermissionDenied, SlotConflict
from clinic_scheduler.models.availability import AvailabilityWindow
from clinic_scheduler.models.booking import Booking
from clinic_scheduler.models.enums import ActorRole, BookingStatus, BusinessStatus, Modality
from clinic_scheduler.scheduling.catalog import ServiceCatalog
from clinic_scheduler.scheduling.locks import OccupancyLocks, occupancy_locks
from clinic_scheduler.scheduling.occupancy import build_occupancy_index
from clinic_scheduler.scheduling.resolver import ensure_advance_notice
from clinic_scheduler.scheduling.timeutil import combine, day_of_week, format_minutes
from clinic_scheduler.scheduling.windows import WindowStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    identity: str
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role is ActorRole.ADMIN


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound('Booking not found.', entity='booking', id=booking_id)
    return booking


def ensure_within_window(
    window: AvailabilityWindow | None,
    on_date: date,
    modality: Modality,
    start_minute: int,
    end_minute: int,
) -> None:
    if window is None:
        raise OutsideWorkingHours(
            f'The clinic is not open for {modality.value} appointments on {on_date.isoformat()}.',
            date=on_date.isoformat(),
            modality=modality.value,
        )
    if start_minute < window.start_minute or end_minute > window.end_minute:
        raise OutsideWorkingHours(
            'Appointment is outside working hours.',
            date=on_date.isoformat(),
            modality=modality.value,
            start_time=format_minutes(start_minute),
            end_time=format_minutes(end_minute),
            window_start=format_minutes(window.start_minute),
            window_end=format_minutes(window.end_minute),
        )


def raise_slot_conflict(on_date: date, modality: Modality, start_minute: int, end_minute: int, conflicting_id: int | None) -> None:
    raise SlotConflict(
        f'This time is no longer available for {modality.value} appointments.',
        date=on_date.isoformat(),
        modality=modality.value,
        start_time=format_minutes(start_minute),
        end_time=format_minutes(end_minute),
        conflicting_booking_id=conflicting_id,
    )


class ReservationManager:
    def __init__(
        self,
        db: Session,
        clock: Clock = system_clock,
        locks: OccupancyLocks = occupancy_locks,
        min_advance_hours: int | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.locks = locks
        self.min_advance_hours = config.MIN_ADVANCE_HOURS if min_advance_hours is None else min_advance_hours
        self.catalog = ServiceCatalog(db)
        self.windows = WindowStore(db)

    def reserve(
        self,
        subject_id: str,
        service_id: int,
        on_date: date,
        start_minute: int,
        modality: Modality,
        notes: str | None = None,
    ) -> Booking:
        service = self.catalog.get_service(service_id)
        service.ensure_supports(modality)

        end_minute = start_minute + service.duration_minutes
        ensure_advance_notice(combine(on_date, start_minute), self.clock.now(), self.min_advance_hours)
        ensure_within_window(
            self.windows.get_active(day_of_week(on_date), modality),
            on_date,
            modality,
            start_minute,
            end_minute,
        )

        with self.locks.hold(self.db, [(on_date, modality)]):
            try:
                occupancy = build_occupancy_index(self.db, on_date, modality)
                conflict = occupancy.conflicts_with(start_minute, end_minute)
                if conflict is not None:
                    raise_slot_conflict(on_date, modality, start_minute, end_minute, conflict.booking_id)

                booking = Booking(
                    subject_id=subject_id,
                    service_id=service.id,
                    booking_date=on_date,
                    start_minute=start_minute,
                    end_minute=end_minute,
                    modality=modality.value,
                    status=BookingStatus.PENDING.value,
                    business_status=BusinessStatus.SCHEDULED.value,
                    reschedule_count=0,
                    notes=notes,
                )
                self.db.add(booking)
                self.db.commit()
            except SlotConflict:
                self.db.rollback()
                logger.warning('Rejected %s booking on %s at %s: slot taken',
                               modality.value, on_date, format_minutes(start_minute))
                raise
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(booking)
        logger.info('Reserved booking %s for %s on %s %s-%s (%s)', booking.id, subject_id, on_date,
                    format_minutes(start_minute), format_minutes(end_minute), modality.value)
        return booking

    def cancel(self, booking_id: int, actor: Actor) -> Booking:
        booking = get_booking(self.db, booking_id)
        if not actor.is_admin and booking.subject_id != actor.identity:
            raise PermissionDenied(
                'Only the patient who booked this appointment can cancel it.',
                booking_id=booking_id,
            )
        if booking.status == BookingStatus.CANCELLED.value:
            return booking

        modality = Modality(booking.modality)
        with self.locks.hold(self.db, [(booking.booking_date, modality)]):
            try:
                booking.status = BookingStatus.CANCELLED.value
                booking.business_status = BusinessStatus.CANCELLED.value
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(booking)
        logger.info('Booking %s cancelled by %s %s', booking_id, actor.role.value, actor.identity)
        return booking

    def list_bookings(self, subject_id: str | None = None, on_date: date | None = None, status: str | None = None) -> list[Booking]:
        query = self.db.query(Booking)
        if subject_id is not None:
            query = query.filter(Booking.subject_id == subject_id)
        if on_date is not None:
            query = query.filter(Booking.booking_date == on_date)
        if status is not None:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.booking_date.desc(), Booking.start_minute.desc()).all()
