import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_scheduler.db")

HOST = os.getenv("HOST", "127.0.0.1")
PORT = _get_int(os.getenv("PORT"), 8000)

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

# Bookings must start at least this many hours after "now".
MIN_ADVANCE_HOURS = _get_int(os.getenv("MIN_ADVANCE_HOURS"), 24)

# Occupancy is tracked in modality-specific units.
ONLINE_GRANULARITY_MINUTES = _get_int(os.getenv("ONLINE_GRANULARITY_MINUTES"), 30)
ONSITE_GRANULARITY_MINUTES = _get_int(os.getenv("ONSITE_GRANULARITY_MINUTES"), 60)
DEFAULT_SLOT_INTERVAL_MINUTES = _get_int(os.getenv("DEFAULT_SLOT_INTERVAL_MINUTES"), 30)

MEETING_LINK_PROVIDER = os.getenv("MEETING_LINK_PROVIDER", "placeholder")
MEETING_LINK_BASE_URL = os.getenv("MEETING_LINK_BASE_URL", "https://meet.google.com")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = _get_int(os.getenv("JWT_EXPIRES_MINUTES"), 60)


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if ONLINE_GRANULARITY_MINUTES <= 0 or ONSITE_GRANULARITY_MINUTES <= 0:
        raise RuntimeError("Granularity minutes must be positive.")
    if MIN_ADVANCE_HOURS < 0:
        raise RuntimeError("MIN_ADVANCE_HOURS cannot be negative.")
