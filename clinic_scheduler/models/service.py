"""Service catalog model definitions."""

from sqlalchemy import Boolean, Column, Integer, String

from clinic_scheduler.database import Base


class Service(Base):
    """A bookable service with a fixed duration."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    supported_modality = Column(String(16), nullable=False, default="both")  # online/on-site/both
    active = Column(Boolean, nullable=False, default=True)
