"""Reschedule settings and history model definitions."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, func

from clinic_scheduler.database import Base


class RescheduleSettings(Base):
    """Reschedule policy. Only the most recent row is in effect."""
    __tablename__ = "reschedule_settings"

    id = Column(Integer, primary_key=True)
    patient_min_hours_before = Column(Integer, nullable=False, default=24)
    admin_min_hours_before = Column(Integer, nullable=False, default=1)
    max_reschedules_per_booking = Column(Integer, nullable=False, default=3)
    allow_patient_reschedule = Column(Boolean, nullable=False, default=True)
    allow_admin_reschedule = Column(Boolean, nullable=False, default=True)
    updated_by = Column(String, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class RescheduleHistoryEntry(Base):
    """One row per successful reschedule; never updated."""
    __tablename__ = "booking_reschedule_history"

    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    old_date = Column(Date, nullable=False)
    old_start_minute = Column(Integer, nullable=False)
    new_date = Column(Date, nullable=False)
    new_start_minute = Column(Integer, nullable=False)
    old_modality = Column(String(16), nullable=False)
    new_modality = Column(String(16), nullable=False)
    actor_role = Column(String(16), nullable=False)
    actor_identity = Column(String, nullable=True)
    reason = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False)
