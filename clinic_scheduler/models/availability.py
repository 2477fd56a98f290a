"""Availability window model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint, func

from clinic_scheduler.database import Base


class AvailabilityWindow(Base):
    """Recurring weekly open hours for one modality on one day of the week."""
    __tablename__ = "availability_windows"
    __table_args__ = (
        UniqueConstraint("day_of_week", "modality", name="uq_availability_windows_day_modality"),
    )

    id = Column(Integer, primary_key=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday..6=Saturday
    modality = Column(String(16), nullable=False)
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)
    slot_interval_minutes = Column(Integer, nullable=False, default=30)
    active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
