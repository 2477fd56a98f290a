from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import require_admin
from clinic_scheduler.core.clock import Clock
from clinic_scheduler.models.availability import AvailabilityWindow
from clinic_scheduler.models.enums import Modality
from clinic_scheduler.routes.dependencies import ensure_database_ready, get_clock, get_db, translate_errors
from clinic_scheduler.scheduling.catalog import ServiceCatalog
from clinic_scheduler.scheduling.reservations import Actor
from clinic_scheduler.scheduling.resolver import AvailabilityResolver
from clinic_scheduler.scheduling.timeutil import day_of_week, format_minutes, parse_minutes
from clinic_scheduler.scheduling.windows import WindowStore

router = APIRouter(tags=['availability'])


class SlotResponse(BaseModel):
    start_time: str
    end_time: str


class AvailableSlotsResponse(BaseModel):
    date: date
    day_of_week: int
    modality: Modality
    service_id: int
    duration_minutes: int
    available_slots: list[SlotResponse]


class AvailableTypesResponse(BaseModel):
    date: date
    day_of_week: int
    available_types: list[Modality]


class SaveWindowRequest(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    modality: Modality
    start_time: int
    end_time: int
    slot_interval_minutes: int | None = Field(default=None, gt=0, le=240)

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_time_of_day(cls, value):
        return parse_minutes(value)


class UpdateWindowRequest(BaseModel):
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    modality: Modality | None = None
    start_time: int | None = None
    end_time: int | None = None
    slot_interval_minutes: int | None = Field(default=None, gt=0, le=240)
    active: bool | None = None

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_time_of_day(cls, value):
        if value is None:
            return None
        return parse_minutes(value)


class WindowResponse(BaseModel):
    id: int
    day_of_week: int
    modality: Modality
    start_time: str
    end_time: str
    slot_interval_minutes: int
    active: bool


class DayModalityResponse(BaseModel):
    day_of_week: int
    modality: Modality | None


def to_window_response(window: AvailabilityWindow) -> WindowResponse:
    return WindowResponse(
        id=window.id,
        day_of_week=window.day_of_week,
        modality=Modality(window.modality),
        start_time=format_minutes(window.start_minute),
        end_time=format_minutes(window.end_minute),
        slot_interval_minutes=window.slot_interval_minutes,
        active=window.active,
    )


@router.get('/slots', response_model=AvailableSlotsResponse)
def list_available_slots(
    slot_date: date = Query(..., alias='date'),
    modality: Modality = Query(default=Modality.ONLINE),
    service_id: int = Query(...),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    with translate_errors(db):
        resolver = AvailabilityResolver(db, clock=clock)
        slots = resolver.list_available_slots(slot_date, modality, service_id)
        service = ServiceCatalog(db).get_service(service_id)

        return AvailableSlotsResponse(
            date=slot_date,
            day_of_week=day_of_week(slot_date),
            modality=modality,
            service_id=service_id,
            duration_minutes=service.duration_minutes,
            available_slots=[SlotResponse(start_time=slot.start_time, end_time=slot.end_time) for slot in slots],
        )


@router.get('/types', response_model=AvailableTypesResponse)
def list_available_types(
    slot_date: date = Query(..., alias='date'),
    service_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    with translate_errors(db):
        modalities = AvailabilityResolver(db, clock=clock).available_modalities(slot_date, service_id)
        return AvailableTypesResponse(
            date=slot_date,
            day_of_week=day_of_week(slot_date),
            available_types=modalities,
        )


@router.get('/windows', response_model=list[WindowResponse])
def list_windows(
    include_inactive: bool = Query(default=True),
    db: Session = Depends(get_db),
    _admin: Actor = Depends(require_admin),
):
    ensure_database_ready()

    with translate_errors(db):
        return [to_window_response(window) for window in WindowStore(db).list_windows(include_inactive)]


@router.get('/windows/days', response_model=list[DayModalityResponse])
def list_day_modalities(
    db: Session = Depends(get_db),
    _admin: Actor = Depends(require_admin),
):
    ensure_database_ready()

    with translate_errors(db):
        modalities = WindowStore(db).active_modalities()
        return [DayModalityResponse(day_of_week=day, modality=modality) for day, modality in modalities.items()]


@router.post('/windows', response_model=WindowResponse, status_code=status.HTTP_201_CREATED)
def save_window(
    data: SaveWindowRequest,
    db: Session = Depends(get_db),
    admin: Actor = Depends(require_admin),
):
    ensure_database_ready()

    with translate_errors(db):
        window = WindowStore(db).save(
            day_of_week=data.day_of_week,
            modality=data.modality,
            start_minute=data.start_time,
            end_minute=data.end_time,
            slot_interval_minutes=data.slot_interval_minutes,
            actor=admin.identity,
        )
        return to_window_response(window)


@router.patch('/windows/{window_id}', response_model=WindowResponse)
def update_window(
    window_id: int,
    data: UpdateWindowRequest,
    db: Session = Depends(get_db),
    admin: Actor = Depends(require_admin),
):
    ensure_database_ready()

    with translate_errors(db):
        window = WindowStore(db).update(
            window_id,
            day_of_week=data.day_of_week,
            modality=data.modality,
            start_minute=data.start_time,
            end_minute=data.end_time,
            slot_interval_minutes=data.slot_interval_minutes,
            active=data.active,
            actor=admin.identity,
        )
        return to_window_response(window)


@router.delete('/windows/{window_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_window(
    window_id: int,
    db: Session = Depends(get_db),
    _admin: Actor = Depends(require_admin),
):
    ensure_database_ready()

    with translate_errors(db):
        WindowStore(db).delete(window_id)
