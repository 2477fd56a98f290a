"""
Reschedule engine.

Moving a booking is gated by four guards, checked in this order:

1. the booking is not in a terminal state,
2. it has not used up its reschedule allowance,
3. rescheduling is enabled for the actor's role,
4. the current appointment is far enough away for the actor's role.

The policy values come from ``ReschedulePolicy``, which callers load and
pass in; the engine never reads settings on its own.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.core.clock import Clock, system_clock
from clinic_scheduler.core.errors import (
    NotReschedulable,
    PermissionDenied,
    RescheduleDisabled,
    RescheduleLimitReached,
    SchedulingError,
    TooCloseToAppointment,
)
from clinic_scheduler.models.booking import Booking
from clinic_scheduler.models.enums import ActorRole, BookingStatus, BusinessStatus, Modality
from clinic_scheduler.models.reschedule import RescheduleHistoryEntry, RescheduleSettings
from clinic_scheduler.scheduling.catalog import ServiceCatalog
from clinic_scheduler.scheduling.locks import OccupancyLocks, occupancy_locks
from clinic_scheduler.scheduling.occupancy import build_occupancy_index
from clinic_scheduler.scheduling.reservations import (
    Actor,
    ensure_within_window,
    get_booking,
    raise_slot_conflict,
)
from clinic_scheduler.scheduling.timeutil import combine, day_of_week, format_minutes, hours_between
from clinic_scheduler.scheduling.windows import WindowStore

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value}
TERMINAL_BUSINESS_STATUSES = {BusinessStatus.COMPLETED.value, BusinessStatus.NO_SHOW.value}


@dataclass(frozen=True)
class ReschedulePolicy:
    patient_min_hours_before: int = 24
    admin_min_hours_before: int = 1
    max_reschedules_per_booking: int = 3
    allow_patient_reschedule: bool = True
    allow_admin_reschedule: bool = True

    @classmethod
    def from_settings(cls, settings: RescheduleSettings) -> 'ReschedulePolicy':
        return cls(
            patient_min_hours_before=settings.patient_min_hours_before,
            admin_min_hours_before=settings.admin_min_hours_before,
            max_reschedules_per_booking=settings.max_reschedules_per_booking,
            allow_patient_reschedule=settings.allow_patient_reschedule,
            allow_admin_reschedule=settings.allow_admin_reschedule,
        )

    def allows(self, role: ActorRole) -> bool:
        if role is ActorRole.ADMIN:
            return self.allow_admin_reschedule
        return self.allow_patient_reschedule

    def min_hours_before(self, role: ActorRole) -> int:
        if role is ActorRole.ADMIN:
            return self.admin_min_hours_before
        return self.patient_min_hours_before


@dataclass(frozen=True)
class RescheduleEligibility:
    allowed: bool
    remaining_reschedules: int
    code: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class RescheduleOutcome:
    booking: Booking
    history_recorded: bool


def check_reschedulable(booking: Booking, actor_role: ActorRole, policy: ReschedulePolicy, now: datetime) -> None:
    """Raise the first guard failure for moving ``booking``; return quietly otherwise."""
    if booking.status in TERMINAL_STATUSES or booking.business_status in TERMINAL_BUSINESS_STATUSES:
        raise NotReschedulable(
            'Only scheduled bookings can be rescheduled.',
            booking_id=booking.id,
            status=booking.status,
            business_status=booking.business_status,
        )

    if booking.reschedule_count >= policy.max_reschedules_per_booking:
        raise RescheduleLimitReached(
            f'Maximum reschedules ({policy.max_reschedules_per_booking}) reached.',
            booking_id=booking.id,
            reschedule_count=booking.reschedule_count,
            max_reschedules_per_booking=policy.max_reschedules_per_booking,
        )

    if not policy.allows(actor_role):
        raise RescheduleDisabled(
            f'{actor_role.value.capitalize()} rescheduling is disabled.',
            actor_role=actor_role.value,
        )

    min_hours = policy.min_hours_before(actor_role)
    hours_until = hours_between(now, combine(booking.booking_date, booking.start_minute))
    if hours_until < min_hours:
        raise TooCloseToAppointment(
            f'Cannot reschedule within {min_hours} hour(s) of the appointment.',
            booking_id=booking.id,
            actor_role=actor_role.value,
            min_hours_before=min_hours,
            hours_until_appointment=round(hours_until, 2),
        )


def remaining_reschedules(booking: Booking, policy: ReschedulePolicy) -> int:
    return max(0, policy.max_reschedules_per_booking - booking.reschedule_count)


class RescheduleSettingsStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self) -> RescheduleSettings:
        settings = self.db.query(RescheduleSettings).order_by(RescheduleSettings.id.desc()).first()
        if settings is None:
            settings = RescheduleSettings(
                patient_min_hours_before=24,
                admin_min_hours_before=1,
                max_reschedules_per_booking=3,
                allow_patient_reschedule=True,
                allow_admin_reschedule=True,
            )
            self.db.add(settings)
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(settings)
            logger.info('Seeded default reschedule settings')
        return settings

    def get_policy(self) -> ReschedulePolicy:
        return ReschedulePolicy.from_settings(self.get())

    def update(self, actor: str | None = None, **changes) -> RescheduleSettings:
        settings = self.get()
        for field_name, value in changes.items():
            if value is None:
                continue
            if not hasattr(RescheduleSettings, field_name) or field_name in {'id', 'updated_at', 'updated_by'}:
                raise ValueError(f'Unknown reschedule setting: {field_name}')
            setattr(settings, field_name, value)
        settings.updated_by = actor
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(settings)
        logger.info('Reschedule settings updated by %s', actor)
        return settings


class RescheduleHistoryRecorder:
    """Appends history rows inside a SAVEPOINT so a failure never sinks the reschedule."""

    def record(self, db: Session, entry: RescheduleHistoryEntry) -> bool:
        try:
            with db.begin_nested():
                db.add(entry)
        except SQLAlchemyError:
            logger.exception('Could not record reschedule history for booking %s', entry.booking_id)
            return False
        return True


class RescheduleEngine:
    def __init__(
        self,
        db: Session,
        clock: Clock = system_clock,
        locks: OccupancyLocks = occupancy_locks,
        history: RescheduleHistoryRecorder | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.locks = locks
        self.history = history or RescheduleHistoryRecorder()
        self.catalog = ServiceCatalog(db)
        self.windows = WindowStore(db)

    def can_reschedule(self, booking_id: int, actor_role: ActorRole, policy: ReschedulePolicy) -> RescheduleEligibility:
        booking = get_booking(self.db, booking_id)
        remaining = remaining_reschedules(booking, policy)
        try:
            check_reschedulable(booking, actor_role, policy, self.clock.now())
        except SchedulingError as exc:
            return RescheduleEligibility(allowed=False, remaining_reschedules=remaining, code=exc.code, reason=exc.message)
        return RescheduleEligibility(allowed=True, remaining_reschedules=remaining)

    def reschedule(
        self,
        booking_id: int,
        actor: Actor,
        new_date: date,
        new_start_minute: int,
        reason: str | None,
        policy: ReschedulePolicy,
        new_modality: Modality | None = None,
    ) -> RescheduleOutcome:
        booking = get_booking(self.db, booking_id)
        if not actor.is_admin and booking.subject_id != actor.identity:
            raise PermissionDenied('Only the patient who booked this appointment can reschedule it.', booking_id=booking_id)

        old_key = (booking.booking_date, Modality(booking.modality))
        target_modality = new_modality or old_key[1]

        with self.locks.hold(self.db, [old_key, (new_date, target_modality)]):
            try:
                outcome = self._move(booking_id, actor, new_date, new_start_minute, target_modality, reason, policy)
                self.db.commit()
            except SchedulingError as exc:
                self.db.rollback()
                logger.warning('Rejected reschedule of booking %s by %s: %s', booking_id, actor.role.value, exc.code)
                raise
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(outcome.booking)
        logger.info('Booking %s rescheduled by %s to %s %s (%s)', booking_id, actor.role.value, new_date,
                    format_minutes(new_start_minute), target_modality.value)
        return outcome

    def _move(
        self,
        booking_id: int,
        actor: Actor,
        new_date: date,
        new_start_minute: int,
        modality: Modality,
        reason: str | None,
        policy: ReschedulePolicy,
    ) -> RescheduleOutcome:
        now = self.clock.now()
        booking = get_booking(self.db, booking_id)
        check_reschedulable(booking, actor.role, policy, now)

        service = self.catalog.get_service(booking.service_id)
        service.ensure_supports(modality)
        new_end_minute = new_start_minute + service.duration_minutes

        occupancy = build_occupancy_index(self.db, new_date, modality, exclude_booking_id=booking.id)
        conflict = occupancy.conflicts_with(new_start_minute, new_end_minute)
        if conflict is not None:
            raise_slot_conflict(new_date, modality, new_start_minute, new_end_minute, conflict.booking_id)

        ensure_within_window(
            self.windows.get_active(day_of_week(new_date), modality),
            new_date,
            modality,
            new_start_minute,
            new_end_minute,
        )

        if booking.original_date is None:
            booking.original_date = booking.booking_date
            booking.original_start_minute = booking.start_minute

        recorded = self.history.record(
            self.db,
            RescheduleHistoryEntry(
                booking_id=booking.id,
                old_date=booking.booking_date,
                old_start_minute=booking.start_minute,
                new_date=new_date,
                new_start_minute=new_start_minute,
                old_modality=booking.modality,
                new_modality=modality.value,
                actor_role=actor.role.value,
                actor_identity=actor.identity,
                reason=reason,
                created_at=now,
            ),
        )

        booking.booking_date = new_date
        booking.start_minute = new_start_minute
        booking.end_minute = new_end_minute
        booking.modality = modality.value
        booking.reschedule_count = booking.reschedule_count + 1
        booking.business_status = BusinessStatus.SCHEDULED.value
        booking.rescheduled_by = actor.role.value
        booking.rescheduled_at = now
        booking.reschedule_reason = reason
        return RescheduleOutcome(booking=booking, history_recorded=recorded)

    def history_for(self, booking_id: int) -> list[RescheduleHistoryEntry]:
        get_booking(self.db, booking_id)
        return self.db.query(RescheduleHistoryEntry).filter(
            RescheduleHistoryEntry.booking_id == booking_id,
        ).order_by(RescheduleHistoryEntry.created_at.desc(), RescheduleHistoryEntry.id.desc()).all()
