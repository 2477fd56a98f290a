from datetime import date, datetime

import pytest
from fastapi import HTTPException
from sqlalchemy import inspect, text
from sqlalchemy.pool import StaticPool

from clinic_scheduler import database, main
from clinic_scheduler.core.clock import FixedClock
from clinic_scheduler.core.errors import (
    AdvanceNoticeViolation,
    NotFound,
    RescheduleLimitReached,
    SlotConflict,
    WindowConflict,
    scheduling_error_to_http,
)
from clinic_scheduler.database import build_engine
from clinic_scheduler.models.enums import Modality
from clinic_scheduler.scheduling.locks import OccupancyLocks, advisory_key


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (NotFound('missing'), 404),
        (SlotConflict('taken'), 409),
        (WindowConflict('clash'), 409),
        (RescheduleLimitReached('too many'), 403),
        (AdvanceNoticeViolation('too soon'), 400),
    ],
)
def test_scheduling_errors_map_to_http_status(error, status_code: int) -> None:
    exception = scheduling_error_to_http(error)

    assert isinstance(exception, HTTPException)
    assert exception.status_code == status_code
    assert exception.detail['code'] == error.code


def test_error_detail_carries_context() -> None:
    error = SlotConflict('This time is no longer available.', date='2024-01-08', start_time='10:00')

    assert error.to_detail() == {
        'code': 'slot_conflict',
        'message': 'This time is no longer available.',
        'date': '2024-01-08',
        'start_time': '10:00',
    }


def test_fixed_clock_advances() -> None:
    clock = FixedClock(datetime(2024, 1, 1, 10, 0))

    clock.advance(hours=2)

    assert clock.now() == datetime(2024, 1, 1, 12, 0)


def test_advisory_key_is_stable_and_distinguishes_modality() -> None:
    monday = date(2024, 1, 8)

    assert advisory_key((monday, Modality.ONLINE)) == advisory_key((monday, Modality.ONLINE))
    assert advisory_key((monday, Modality.ONLINE)) != advisory_key((monday, Modality.ON_SITE))


def test_occupancy_locks_release_keys_after_use(db) -> None:
    locks = OccupancyLocks()
    key = (date(2024, 1, 8), Modality.ON_SITE)

    with locks.hold(db, [key, key]):
        assert locks.active_keys() == {key}

    assert locks.active_keys() == set()


def test_occupancy_locks_release_keys_on_error(db) -> None:
    locks = OccupancyLocks()
    key = (date(2024, 1, 8), Modality.ONLINE)

    with pytest.raises(RuntimeError):
        with locks.hold(db, [key]):
            raise RuntimeError('boom')

    assert locks.active_keys() == set()


def test_ensure_booking_schema_backfills_legacy_table(monkeypatch: pytest.MonkeyPatch) -> None:
    legacy_engine = build_engine('sqlite://', poolclass=StaticPool)
    with legacy_engine.begin() as connection:
        connection.execute(text(
            'CREATE TABLE bookings (id INTEGER PRIMARY KEY, subject_id VARCHAR, service_id INTEGER, '
            'booking_date DATE, start_minute INTEGER, end_minute INTEGER, modality VARCHAR(16), status VARCHAR(16))'
        ))
    monkeypatch.setattr(database, '_booking_schema_checked', False)

    database.ensure_booking_schema(bind=legacy_engine)

    inspector = inspect(legacy_engine)
    columns = {column['name'] for column in inspector.get_columns('bookings')}
    assert {'business_status', 'reschedule_count', 'original_date', 'original_start_minute', 'meeting_link'} <= columns
    assert 'idx_bookings_date_modality' in {index['name'] for index in inspector.get_indexes('bookings')}
    legacy_engine.dispose()


def test_run_serves_app_with_configured_address(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr(main.uvicorn, 'run', lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.setattr(main.config, 'PORT', 8123)

    main.run()

    assert calls == [('clinic_scheduler.main:app', {'host': main.config.HOST, 'port': 8123})]
