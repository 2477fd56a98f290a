"""Enumerations shared by the ORM models and the scheduling core."""

from enum import Enum


class Modality(str, Enum):
    ONLINE = "online"
    ON_SITE = "on-site"


class SupportedModality(str, Enum):
    """What a service can be delivered as."""
    ONLINE = "online"
    ON_SITE = "on-site"
    BOTH = "both"

    def allows(self, modality: Modality) -> bool:
        return self is SupportedModality.BOTH or self.value == modality.value


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BusinessStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"


class ActorRole(str, Enum):
    PATIENT = "patient"
    ADMIN = "admin"
