"""
Typed scheduling errors and their HTTP mapping.

The scheduling components raise these; routes translate them with
``scheduling_error_to_http`` so handlers stay thin.
"""
from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status


class SchedulingError(Exception):
    """Base class for every business rejection raised by the scheduler."""

    code = 'scheduling_error'

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_detail(self) -> dict[str, Any]:
        return {'code': self.code, 'message': self.message, **self.context}


class AdvanceNoticeViolation(SchedulingError):
    code = 'advance_notice_violation'


class SlotConflict(SchedulingError):
    code = 'slot_conflict'


class OutsideWorkingHours(SchedulingError):
    code = 'outside_working_hours'


class ModalityMismatch(SchedulingError):
    code = 'modality_mismatch'


class NotReschedulable(SchedulingError):
    code = 'not_reschedulable'


class RescheduleLimitReached(SchedulingError):
    code = 'reschedule_limit_reached'


class RescheduleDisabled(SchedulingError):
    code = 'reschedule_disabled'


class TooCloseToAppointment(SchedulingError):
    code = 'too_close_to_appointment'


class NotFound(SchedulingError):
    code = 'not_found'


class InvalidWindow(SchedulingError):
    code = 'invalid_window'


class WindowConflict(SchedulingError):
    code = 'window_conflict'


class InvalidStatusTransition(SchedulingError):
    code = 'invalid_status_transition'


class PermissionDenied(SchedulingError):
    code = 'permission_denied'


# First matching class wins, so subclasses must be listed before their bases.
ERROR_STATUS_CODES: list[tuple[type[SchedulingError], int]] = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (SlotConflict, status.HTTP_409_CONFLICT),
    (WindowConflict, status.HTTP_409_CONFLICT),
    (InvalidStatusTransition, status.HTTP_409_CONFLICT),
    (NotReschedulable, status.HTTP_403_FORBIDDEN),
    (RescheduleLimitReached, status.HTTP_403_FORBIDDEN),
    (RescheduleDisabled, status.HTTP_403_FORBIDDEN),
    (TooCloseToAppointment, status.HTTP_403_FORBIDDEN),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (AdvanceNoticeViolation, status.HTTP_400_BAD_REQUEST),
    (OutsideWorkingHours, status.HTTP_400_BAD_REQUEST),
    (ModalityMismatch, status.HTTP_400_BAD_REQUEST),
    (InvalidWindow, status.HTTP_400_BAD_REQUEST),
]


def scheduling_error_to_http(exc: SchedulingError) -> HTTPException:
    """Map a scheduling error onto an ``HTTPException`` carrying its context."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.to_detail())
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_detail())
