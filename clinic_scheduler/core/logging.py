import logging

from clinic_scheduler.core import config


def configure_logging() -> None:
    level = logging.DEBUG if config.APP_ENV == "development" else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # SQLAlchemy engine logging is driven by SQL_ECHO instead.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
