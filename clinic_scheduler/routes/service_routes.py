from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinic_scheduler.models.enums import SupportedModality
from clinic_scheduler.routes.dependencies import ensure_database_ready, get_db, translate_errors
from clinic_scheduler.scheduling.catalog import ServiceCatalog

router = APIRouter(tags=['services'])


class ServiceResponse(BaseModel):
    id: int
    name: str
    duration_minutes: int
    supported_modality: SupportedModality


@router.get('', response_model=list[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    ensure_database_ready()

    with translate_errors(db):
        return [
            ServiceResponse(
                id=service.id,
                name=service.name,
                duration_minutes=service.duration_minutes,
                supported_modality=service.supported_modality,
            )
            for service in ServiceCatalog(db).list_services()
        ]
