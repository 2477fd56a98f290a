"""
Occupancy derived from existing bookings.

Two views of the same bookings are kept:

- blocked starts: each booking blocks ``ceil(duration / granularity)``
  consecutive granularity-sized slots beginning at its own start, so the
  resolver can test candidate starts with a set lookup;
- occupied intervals: the exact ``[start, end)`` ranges, used by the
  authoritative overlap test at commit time.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.models.booking import Booking
from clinic_scheduler.models.enums import BookingStatus, Modality


def granularity_for(modality: Modality) -> int:
    if modality is Modality.ONLINE:
        return config.ONLINE_GRANULARITY_MINUTES
    return config.ONSITE_GRANULARITY_MINUTES


def units_for(duration_minutes: int, granularity: int) -> int:
    return max(1, math.ceil(duration_minutes / granularity))


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and a_end > b_start


def blocked_starts_for(start_minute: int, duration_minutes: int, granularity: int) -> list[int]:
    return [start_minute + unit * granularity for unit in range(units_for(duration_minutes, granularity))]


@dataclass(frozen=True)
class OccupiedInterval:
    booking_id: int | None
    start: int
    end: int


@dataclass
class OccupancyIndex:
    modality: Modality
    granularity: int
    intervals: list[OccupiedInterval] = field(default_factory=list)
    blocked: set[int] = field(default_factory=set)

    @classmethod
    def from_bookings(cls, bookings: Iterable[Booking], modality: Modality, granularity: int | None = None) -> 'OccupancyIndex':
        index = cls(modality=modality, granularity=granularity or granularity_for(modality))
        for booking in bookings:
            if booking.status == BookingStatus.CANCELLED.value or booking.modality != modality.value:
                continue
            index.add(booking.id, booking.start_minute, booking.end_minute)
        return index

    def add(self, booking_id: int | None, start_minute: int, end_minute: int) -> None:
        self.intervals.append(OccupiedInterval(booking_id, start_minute, end_minute))
        self.blocked.update(blocked_starts_for(start_minute, end_minute - start_minute, self.granularity))

    def is_blocked(self, start_minute: int) -> bool:
        return start_minute in self.blocked

    def span_is_free(self, start_minute: int, duration_minutes: int) -> bool:
        """True when none of the granularity units the service needs is blocked."""
        return not any(
            self.is_blocked(unit_start)
            for unit_start in blocked_starts_for(start_minute, duration_minutes, self.granularity)
        )

    def conflicts_with(self, start_minute: int, end_minute: int, exclude_booking_id: int | None = None) -> OccupiedInterval | None:
        for interval in self.intervals:
            if exclude_booking_id is not None and interval.booking_id == exclude_booking_id:
                continue
            if intervals_overlap(start_minute, end_minute, interval.start, interval.end):
                return interval
        return None


def load_active_bookings(
    db: Session,
    on_date: date,
    modality: Modality,
    exclude_booking_id: int | None = None,
) -> list[Booking]:
    query = db.query(Booking).filter(
        Booking.booking_date == on_date,
        Booking.modality == modality.value,
        Booking.status != BookingStatus.CANCELLED.value,
    )
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)
    return query.order_by(Booking.start_minute.asc()).all()


def build_occupancy_index(
    db: Session,
    on_date: date,
    modality: Modality,
    exclude_booking_id: int | None = None,
) -> OccupancyIndex:
    return OccupancyIndex.from_bookings(load_active_bookings(db, on_date, modality, exclude_booking_id), modality)
