"""Booking model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, func

from clinic_scheduler.database import Base


class Booking(Base):
    """A reserved appointment. Cancelled bookings stay in the table."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    subject_id = Column(String, nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    booking_date = Column(Date, nullable=False)
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)
    modality = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    business_status = Column(String(16), nullable=False, default="scheduled")
    reschedule_count = Column(Integer, nullable=False, default=0)
    original_date = Column(Date, nullable=True)
    original_start_minute = Column(Integer, nullable=True)
    rescheduled_by = Column(String(16), nullable=True)
    rescheduled_at = Column(DateTime, nullable=True)
    reschedule_reason = Column(String, nullable=True)
    meeting_link = Column(String(255), nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute
