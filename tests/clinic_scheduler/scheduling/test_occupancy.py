from datetime import date

from clinic_scheduler.models.booking import Booking
from clinic_scheduler.models.enums import Modality
from clinic_scheduler.scheduling.occupancy import (
    OccupancyIndex,
    blocked_starts_for,
    build_occupancy_index,
    intervals_overlap,
    units_for,
)

BOOKING_DATE = date(2024, 1, 8)


def make_row(booking_id: int, start: int, end: int, modality: Modality = Modality.ON_SITE, status: str = 'pending') -> Booking:
    return Booking(
        id=booking_id,
        subject_id='patient@example.com',
        service_id=1,
        booking_date=BOOKING_DATE,
        start_minute=start,
        end_minute=end,
        modality=modality.value,
        status=status,
    )


def test_units_for_rounds_up_and_never_returns_zero() -> None:
    assert units_for(90, 60) == 2
    assert units_for(60, 60) == 1
    assert units_for(45, 30) == 2
    assert units_for(0, 30) == 1


def test_ninety_minute_on_site_booking_blocks_two_hourly_slots() -> None:
    index = OccupancyIndex.from_bookings([make_row(1, 540, 630)], Modality.ON_SITE, granularity=60)

    assert index.blocked == {540, 600}
    assert index.is_blocked(540)
    assert index.is_blocked(600)
    assert not index.is_blocked(660)


def test_online_booking_blocks_half_hour_units() -> None:
    assert blocked_starts_for(600, 60, 30) == [600, 630]


def test_cancelled_and_other_modality_bookings_are_ignored() -> None:
    index = OccupancyIndex.from_bookings(
        [
            make_row(1, 540, 600, status='cancelled'),
            make_row(2, 600, 660, modality=Modality.ONLINE),
            make_row(3, 720, 780),
        ],
        Modality.ON_SITE,
        granularity=60,
    )

    assert index.blocked == {720}
    assert [interval.booking_id for interval in index.intervals] == [3]


def test_span_is_free_checks_every_unit_the_service_needs() -> None:
    index = OccupancyIndex.from_bookings([make_row(1, 600, 660)], Modality.ON_SITE, granularity=60)

    assert not index.span_is_free(540, 90)
    assert index.span_is_free(660, 120)


def test_intervals_overlap_treats_touching_ranges_as_free() -> None:
    assert intervals_overlap(540, 600, 570, 630)
    assert not intervals_overlap(540, 600, 600, 660)
    assert not intervals_overlap(600, 660, 540, 600)


def test_conflicts_with_honours_excluded_booking() -> None:
    index = OccupancyIndex.from_bookings([make_row(7, 600, 660)], Modality.ON_SITE, granularity=60)

    assert index.conflicts_with(630, 690).booking_id == 7
    assert index.conflicts_with(630, 690, exclude_booking_id=7) is None
    assert index.conflicts_with(660, 720) is None


def test_build_occupancy_index_reads_only_matching_bookings(db, make_service, make_booking) -> None:
    service = make_service()
    kept = make_booking(service.id, BOOKING_DATE, 540, 600)
    make_booking(service.id, BOOKING_DATE, 600, 660, status='cancelled')
    make_booking(service.id, BOOKING_DATE, 660, 720, modality=Modality.ONLINE)
    make_booking(service.id, date(2024, 1, 9), 540, 600)

    index = build_occupancy_index(db, BOOKING_DATE, Modality.ON_SITE)

    assert [interval.booking_id for interval in index.intervals] == [kept.id]
    assert index.granularity == 60


def test_build_occupancy_index_can_exclude_a_booking(db, make_service, make_booking) -> None:
    service = make_service()
    moving = make_booking(service.id, BOOKING_DATE, 540, 600)

    index = build_occupancy_index(db, BOOKING_DATE, Modality.ON_SITE, exclude_booking_id=moving.id)

    assert index.intervals == []
