from datetime import date, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import get_current_actor, require_admin
from clinic_scheduler.core.clock import Clock
from clinic_scheduler.models.enums import Modality
from clinic_scheduler.models.reschedule import RescheduleHistoryEntry, RescheduleSettings
from clinic_scheduler.routes.booking_routes import BookingResponse, ensure_can_view, to_booking_response
from clinic_scheduler.routes.dependencies import ensure_database_ready, get_clock, get_db, get_locks, translate_errors
from clinic_scheduler.scheduling.locks import OccupancyLocks
from clinic_scheduler.scheduling.reservations import Actor, get_booking
from clinic_scheduler.scheduling.reschedule import RescheduleEngine, RescheduleSettingsStore
from clinic_scheduler.scheduling.timeutil import format_minutes, parse_minutes

router = APIRouter(tags=['reschedule'])

MAX_REASON_LENGTH = 500


class RescheduleSettingsResponse(BaseModel):
    patient_min_hours_before: int
    admin_min_hours_before: int
    max_reschedules_per_booking: int
    allow_patient_reschedule: bool
    allow_admin_reschedule: bool
    updated_by: str | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class UpdateRescheduleSettingsRequest(BaseModel):
    patient_min_hours_before: int | None = Field(default=None, ge=0)
    admin_min_hours_before: int | None = Field(default=None, ge=0)
    max_reschedules_per_booking: int | None = Field(default=None, ge=0)
    allow_patient_reschedule: bool | None = None
    allow_admin_reschedule: bool | None = None


class RescheduleRequest(BaseModel):
    new_date: date
    new_time: int
    new_modality: Modality | None = None
    reason: str | None = None

    @field_validator('new_time', mode='before')
    @classmethod
    def validate_new_time(cls, value):
        return parse_minutes(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')
        return normalized or None


class RescheduleResponse(BaseModel):
    booking: BookingResponse
    history_recorded: bool


class CanRescheduleResponse(BaseModel):
    allowed: bool
    code: str | None = None
    reason: str | None = None
    remaining_reschedules: int


class HistoryEntryResponse(BaseModel):
    id: int
    booking_id: int
    old_date: date
    old_time: str
    new_date: date
    new_time: str
    old_modality: Modality
    new_modality: Modality
    actor_role: str
    actor_identity: str | None = None
    reason: str | None = None
    created_at: datetime


def to_history_response(entry: RescheduleHistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=entry.id,
        booking_id=entry.booking_id,
        old_date=entry.old_date,
        old_time=format_minutes(entry.old_start_minute),
        new_date=entry.new_date,
        new_time=format_minutes(entry.new_start_minute),
        old_modality=Modality(entry.old_modality),
        new_modality=Modality(entry.new_modality),
        actor_role=entry.actor_role,
        actor_identity=entry.actor_identity,
        reason=entry.reason,
        created_at=entry.created_at,
    )


def to_settings_response(settings: RescheduleSettings) -> RescheduleSettingsResponse:
    return RescheduleSettingsResponse.model_validate(settings)


@router.get('/settings', response_model=RescheduleSettingsResponse)
def get_reschedule_settings(db: Session = Depends(get_db)):
    ensure_database_ready()

    with translate_errors(db):
        return to_settings_response(RescheduleSettingsStore(db).get())


@router.put('/settings', response_model=RescheduleSettingsResponse)
def update_reschedule_settings(
    data: UpdateRescheduleSettingsRequest,
    db: Session = Depends(get_db),
    admin: Actor = Depends(require_admin),
):
    ensure_database_ready()

    with translate_errors(db):
        settings = RescheduleSettingsStore(db).update(actor=admin.identity, **data.model_dump())
        return to_settings_response(settings)


@router.post('/booking/{booking_id}', response_model=RescheduleResponse)
def reschedule_booking(
    booking_id: int,
    data: RescheduleRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    clock: Clock = Depends(get_clock),
    locks: OccupancyLocks = Depends(get_locks),
):
    ensure_database_ready()

    with translate_errors(db):
        policy = RescheduleSettingsStore(db).get_policy()
        outcome = RescheduleEngine(db, clock=clock, locks=locks).reschedule(
            booking_id,
            actor,
            new_date=data.new_date,
            new_start_minute=data.new_time,
            reason=data.reason,
            policy=policy,
            new_modality=data.new_modality,
        )
        return RescheduleResponse(
            booking=to_booking_response(outcome.booking),
            history_recorded=outcome.history_recorded,
        )


@router.get('/booking/{booking_id}/history', response_model=list[HistoryEntryResponse])
def get_reschedule_history(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    ensure_database_ready()

    with translate_errors(db):
        ensure_can_view(get_booking(db, booking_id), actor)
        return [to_history_response(entry) for entry in RescheduleEngine(db).history_for(booking_id)]


@router.get('/booking/{booking_id}/can-reschedule', response_model=CanRescheduleResponse)
def check_reschedule_permission(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    with translate_errors(db):
        ensure_can_view(get_booking(db, booking_id), actor)
        policy = RescheduleSettingsStore(db).get_policy()
        eligibility = RescheduleEngine(db, clock=clock).can_reschedule(booking_id, actor.role, policy)
        return CanRescheduleResponse(
            allowed=eligibility.allowed,
            code=eligibility.code,
            reason=eligibility.reason,
            remaining_reschedules=eligibility.remaining_reschedules,
        )
