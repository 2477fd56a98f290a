"""
Booking status updates driven by the clinic staff.

Workflow status and business status move independently; cancelling either
cancels both. Confirming an online booking asks the meeting-link provider
for a link, but a provider failure never blocks the status change.
"""

import logging

from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import InvalidStatusTransition
from clinic_scheduler.models.booking import Booking
from clinic_scheduler.models.enums import BookingStatus, BusinessStatus, Modality
from clinic_scheduler.scheduling.meeting_links import MeetingLinkError, MeetingLinkProvider, MeetingRequest
from clinic_scheduler.scheduling.reservations import get_booking
from clinic_scheduler.scheduling.timeutil import format_minutes

logger = logging.getLogger(__name__)

VALID_NEXT = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

VALID_NEXT_BUSINESS = {
    BusinessStatus.SCHEDULED: {BusinessStatus.COMPLETED, BusinessStatus.NO_SHOW, BusinessStatus.CANCELLED},
    BusinessStatus.COMPLETED: set(),
    BusinessStatus.NO_SHOW: {BusinessStatus.COMPLETED},
    BusinessStatus.CANCELLED: set(),
}


class BookingStatusService:
    def __init__(self, db: Session, meeting_links: MeetingLinkProvider | None = None) -> None:
        self.db = db
        self.meeting_links = meeting_links

    def update_status(self, booking_id: int, new_status: BookingStatus) -> Booking:
        booking = get_booking(self.db, booking_id)
        current = BookingStatus(booking.status)
        if new_status not in VALID_NEXT[current]:
            raise InvalidStatusTransition(
                f'Cannot change booking status from {current.value} to {new_status.value}.',
                booking_id=booking_id,
                current_status=current.value,
                requested_status=new_status.value,
            )

        booking.status = new_status.value
        if new_status is BookingStatus.CANCELLED:
            booking.business_status = BusinessStatus.CANCELLED.value
        elif new_status is BookingStatus.CONFIRMED and booking.modality == Modality.ONLINE.value:
            link = self._create_meeting_link(booking)
            if link:
                booking.meeting_link = link

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info('Booking %s status changed: %s -> %s', booking_id, current.value, new_status.value)
        return booking

    def update_business_status(self, booking_id: int, new_status: BusinessStatus) -> Booking:
        booking = get_booking(self.db, booking_id)
        current = BusinessStatus(booking.business_status)
        if new_status not in VALID_NEXT_BUSINESS[current]:
            raise InvalidStatusTransition(
                f'Cannot change business status from {current.value} to {new_status.value}.',
                booking_id=booking_id,
                current_business_status=current.value,
                requested_business_status=new_status.value,
            )

        booking.business_status = new_status.value
        if new_status is BusinessStatus.CANCELLED:
            booking.status = BookingStatus.CANCELLED.value

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info('Booking %s business status changed: %s -> %s', booking_id, current.value, new_status.value)
        return booking

    def _create_meeting_link(self, booking: Booking) -> str | None:
        if self.meeting_links is None:
            return None

        request = MeetingRequest(
            booking_id=booking.id,
            date=booking.booking_date,
            time=format_minutes(booking.start_minute),
            duration_minutes=booking.duration_minutes,
            attendee_contact=booking.subject_id,
        )
        try:
            return self.meeting_links.create_link(request)
        except MeetingLinkError:
            logger.exception('Meeting link creation failed for booking %s', booking.id)
            return None
