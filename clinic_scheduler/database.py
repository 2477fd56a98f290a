from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_scheduler.core import config


def build_engine(database_url: str, **kwargs) -> Engine:
    if database_url.startswith('sqlite'):
        kwargs.setdefault('connect_args', {'check_same_thread': False})

    built = create_engine(database_url, echo=config.SQL_ECHO, **kwargs)

    if built.dialect.name == 'sqlite':
        # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; emit it ourselves.
        @event.listens_for(built, 'connect')
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(built, 'begin')
        def _emit_begin(connection):
            connection.exec_driver_sql('BEGIN')

    return built


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_schema_checked = False


def ensure_booking_schema(bind: Engine | None = None) -> None:
    """Backfill columns and indexes on databases created by older releases."""
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    target = bind or engine

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(target)

        if 'bookings' not in inspector.get_table_names():
            _booking_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('bookings')}
        migration_steps = [
            ('business_status', "ALTER TABLE bookings ADD COLUMN business_status VARCHAR(16) DEFAULT 'scheduled'"),
            ('reschedule_count', 'ALTER TABLE bookings ADD COLUMN reschedule_count INTEGER DEFAULT 0'),
            ('original_date', 'ALTER TABLE bookings ADD COLUMN original_date DATE'),
            ('original_start_minute', 'ALTER TABLE bookings ADD COLUMN original_start_minute INTEGER'),
            ('meeting_link', 'ALTER TABLE bookings ADD COLUMN meeting_link VARCHAR(255)'),
        ]

        with target.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_date_modality ON bookings(booking_date, modality)')
            )

        _booking_schema_checked = True
