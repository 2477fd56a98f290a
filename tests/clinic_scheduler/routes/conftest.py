import pytest
from fastapi.testclient import TestClient

from clinic_scheduler.auth.jwt_handler import create_access_token
from clinic_scheduler.main import app
from clinic_scheduler.routes.dependencies import get_clock, get_db, get_locks, get_meeting_link_provider
from clinic_scheduler.scheduling.locks import OccupancyLocks

ROUTE_MODULES = ('availability_routes', 'booking_routes', 'reschedule_routes', 'service_routes')


@pytest.fixture
def client(db, clock, monkeypatch: pytest.MonkeyPatch):
    for module in ROUTE_MODULES:
        monkeypatch.setattr(f'clinic_scheduler.routes.{module}.ensure_database_ready', lambda: None)

    # The in-memory engine has one shared connection, so requests reuse the test session.
    def override_get_db():
        yield db

    locks = OccupancyLocks()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_locks] = lambda: locks
    app.dependency_overrides[get_meeting_link_provider] = lambda: None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(subject: str, role: str) -> dict[str, str]:
    return {'Authorization': f'Bearer {create_access_token(subject, role)}'}


@pytest.fixture
def patient_headers() -> dict[str, str]:
    return auth_headers('patient@example.com', 'patient')


@pytest.fixture
def other_patient_headers() -> dict[str, str]:
    return auth_headers('other@example.com', 'patient')


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers('admin@example.com', 'admin')
