import os
from datetime import date, datetime

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('JWT_SECRET_KEY', 'test-signing-key-long-enough-for-hs256')

from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinic_scheduler.core.clock import FixedClock  # noqa: E402
from clinic_scheduler.database import Base, build_engine  # noqa: E402
from clinic_scheduler.models import availability, booking, reschedule, service  # noqa: E402,F401
from clinic_scheduler.models.booking import Booking  # noqa: E402
from clinic_scheduler.models.enums import Modality  # noqa: E402
from clinic_scheduler.models.service import Service  # noqa: E402
from clinic_scheduler.scheduling.locks import OccupancyLocks  # noqa: E402
from clinic_scheduler.scheduling.windows import WindowStore  # noqa: E402


@pytest.fixture
def engine():
    test_engine = build_engine('sqlite://', poolclass=StaticPool)
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    # 2024-01-01 is a Monday.
    return FixedClock(datetime(2024, 1, 1, 10, 0))


@pytest.fixture
def locks() -> OccupancyLocks:
    return OccupancyLocks()


@pytest.fixture
def make_service(db):
    def _make_service(name: str = 'Consultation', duration_minutes: int = 60, supported_modality: str = 'both') -> Service:
        created = Service(name=name, duration_minutes=duration_minutes, supported_modality=supported_modality, active=True)
        db.add(created)
        db.commit()
        db.refresh(created)
        return created

    return _make_service


@pytest.fixture
def make_window(db):
    def _make_window(day_of_week: int, modality: Modality, start: int, end: int, interval: int = 60):
        return WindowStore(db).save(day_of_week, modality, start, end, interval)

    return _make_window


@pytest.fixture
def make_booking(db):
    def _make_booking(
        service_id: int,
        on_date: date,
        start: int,
        end: int,
        modality: Modality = Modality.ON_SITE,
        status: str = 'pending',
        business_status: str = 'scheduled',
        subject_id: str = 'patient@example.com',
        reschedule_count: int = 0,
    ) -> Booking:
        created = Booking(
            subject_id=subject_id,
            service_id=service_id,
            booking_date=on_date,
            start_minute=start,
            end_minute=end,
            modality=modality.value,
            status=status,
            business_status=business_status,
            reschedule_count=reschedule_count,
        )
        db.add(created)
        db.commit()
        db.refresh(created)
        return created

    return _make_booking
