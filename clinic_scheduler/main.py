import logging

import uvicorn

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduler.core import config
from clinic_scheduler.core.logging import configure_logging
from clinic_scheduler.database import Base, engine, ensure_booking_schema
from clinic_scheduler.models import availability, booking, reschedule, service  # noqa: F401
from clinic_scheduler.routes import availability_routes, booking_routes, reschedule_routes, service_routes

configure_logging()
config.validate_runtime_config()

app = FastAPI(title='Clinic Scheduler API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic Scheduler API Running'}


app.include_router(service_routes.router, prefix='/services')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(booking_routes.router, prefix='/bookings')
app.include_router(reschedule_routes.router, prefix='/reschedule')


def run() -> None:
    uvicorn.run('clinic_scheduler.main:app', host=config.HOST, port=config.PORT)


if __name__ == '__main__':
    run()
