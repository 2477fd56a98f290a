from dataclasses import dataclass

from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import ModalityMismatch, NotFound
from clinic_scheduler.models.enums import Modality, SupportedModality
from clinic_scheduler.models.service import Service


@dataclass(frozen=True)
class ServiceInfo:
    id: int
    name: str
    duration_minutes: int
    supported_modality: SupportedModality

    def ensure_supports(self, modality: Modality) -> None:
        if not self.supported_modality.allows(modality):
            raise ModalityMismatch(
                f'{self.name} is not offered as an {modality.value} appointment.',
                service_id=self.id,
                requested_modality=modality.value,
                supported_modality=self.supported_modality.value,
            )


class ServiceCatalog:
    """Read-only view over the services table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_service(self, service_id: int) -> ServiceInfo:
        service = self.db.query(Service).filter(
            Service.id == service_id,
            Service.active.is_(True),
        ).first()
        if service is None:
            raise NotFound('Service not found.', entity='service', id=service_id)
        return _to_info(service)

    def list_services(self) -> list[ServiceInfo]:
        services = self.db.query(Service).filter(Service.active.is_(True)).order_by(Service.name.asc()).all()
        return [_to_info(service) for service in services]


def _to_info(service: Service) -> ServiceInfo:
    return ServiceInfo(
        id=service.id,
        name=service.name,
        duration_minutes=service.duration_minutes,
        supported_modality=SupportedModality(service.supported_modality),
    )
