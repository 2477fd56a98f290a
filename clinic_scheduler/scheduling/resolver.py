"""
Availability resolver.

Combines the active window for a weekday, the slot generator and the
occupancy index into the list of start times a client may be offered. The
result is advisory: reservations re-check occupancy under a lock before
they commit.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.core.clock import Clock, system_clock
from clinic_scheduler.core.errors import AdvanceNoticeViolation
from clinic_scheduler.models.enums import Modality
from clinic_scheduler.scheduling.catalog import ServiceCatalog
from clinic_scheduler.scheduling.occupancy import build_occupancy_index
from clinic_scheduler.scheduling.slots import generate_slots_for_window
from clinic_scheduler.scheduling.timeutil import combine, day_of_week, format_minutes
from clinic_scheduler.scheduling.windows import WindowStore


@dataclass(frozen=True)
class AvailableSlot:
    start: int
    end: int

    @property
    def start_time(self) -> str:
        return format_minutes(self.start)

    @property
    def end_time(self) -> str:
        return format_minutes(self.end)


def ensure_advance_notice(requested: datetime, now: datetime, min_advance_hours: int) -> None:
    earliest = now + timedelta(hours=min_advance_hours)
    if requested < earliest:
        raise AdvanceNoticeViolation(
            f'Bookings must be made at least {min_advance_hours} hours in advance.',
            min_advance_hours=min_advance_hours,
            requested=requested.isoformat(),
            earliest_allowed=earliest.isoformat(),
        )


class AvailabilityResolver:
    def __init__(self, db: Session, clock: Clock = system_clock, min_advance_hours: int | None = None) -> None:
        self.db = db
        self.clock = clock
        self.min_advance_hours = config.MIN_ADVANCE_HOURS if min_advance_hours is None else min_advance_hours
        self.windows = WindowStore(db)
        self.catalog = ServiceCatalog(db)

    def list_available_slots(self, on_date: date, modality: Modality, service_id: int) -> list[AvailableSlot]:
        ensure_advance_notice(combine(on_date, 0), self.clock.now(), self.min_advance_hours)

        service = self.catalog.get_service(service_id)
        service.ensure_supports(modality)

        window = self.windows.get_active(day_of_week(on_date), modality)
        if window is None:
            return []

        occupancy = build_occupancy_index(self.db, on_date, modality)
        duration = service.duration_minutes
        available: list[AvailableSlot] = []

        for slot in generate_slots_for_window(window):
            if occupancy.is_blocked(slot.start):
                continue
            if not occupancy.span_is_free(slot.start, duration):
                continue
            end = slot.start + duration
            if end > window.end_minute:
                continue
            if occupancy.conflicts_with(slot.start, end) is not None:
                continue
            available.append(AvailableSlot(slot.start, end))

        return available

    def available_modalities(self, on_date: date, service_id: int | None = None) -> list[Modality]:
        open_modality = self.windows.active_modalities()[day_of_week(on_date)]
        if open_modality is None:
            return []
        if service_id is not None:
            service = self.catalog.get_service(service_id)
            if not service.supported_modality.allows(open_modality):
                return []
        return [open_modality]
