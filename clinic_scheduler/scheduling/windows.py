"""
Availability window store.

Windows are recurring weekly open hours. A day is served by a single
modality while any of its windows is active; that rule is enforced here on
every write so readers never have to reconcile conflicting rows.
"""

import logging
from threading import Lock

from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import InvalidWindow, NotFound, WindowConflict
from clinic_scheduler.models.availability import AvailabilityWindow
from clinic_scheduler.models.enums import Modality
from clinic_scheduler.scheduling.timeutil import MINUTES_PER_DAY, format_minutes

logger = logging.getLogger(__name__)

DAYS_OF_WEEK = range(7)

_window_write_lock = Lock()


def validate_window_fields(day_of_week: int, start_minute: int, end_minute: int, slot_interval_minutes: int) -> None:
    if day_of_week not in DAYS_OF_WEEK:
        raise InvalidWindow('Day of week must be between 0 (Sunday) and 6 (Saturday).', day_of_week=day_of_week)
    if not 0 <= start_minute < MINUTES_PER_DAY or not 0 < end_minute <= MINUTES_PER_DAY:
        raise InvalidWindow('Window times must fall within a single day.', start_time=start_minute, end_time=end_minute)
    if start_minute >= end_minute:
        raise InvalidWindow(
            'Start time must be before end time.',
            start_time=format_minutes(start_minute),
            end_time=format_minutes(end_minute),
        )
    if slot_interval_minutes <= 0:
        raise InvalidWindow('Slot interval must be positive.', slot_interval_minutes=slot_interval_minutes)
    if slot_interval_minutes > end_minute - start_minute:
        raise InvalidWindow(
            'Slot interval is longer than the window itself.',
            slot_interval_minutes=slot_interval_minutes,
            window_minutes=end_minute - start_minute,
        )


class WindowStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_windows(self, include_inactive: bool = True) -> list[AvailabilityWindow]:
        query = self.db.query(AvailabilityWindow)
        if not include_inactive:
            query = query.filter(AvailabilityWindow.active.is_(True))
        return query.order_by(AvailabilityWindow.day_of_week.asc(), AvailabilityWindow.modality.asc()).all()

    def get(self, window_id: int) -> AvailabilityWindow:
        window = self.db.get(AvailabilityWindow, window_id)
        if window is None:
            raise NotFound('Availability window not found.', entity='availability_window', id=window_id)
        return window

    def get_active(self, day_of_week: int, modality: Modality) -> AvailabilityWindow | None:
        return self.db.query(AvailabilityWindow).filter(
            AvailabilityWindow.day_of_week == day_of_week,
            AvailabilityWindow.modality == modality.value,
            AvailabilityWindow.active.is_(True),
        ).first()

    def active_modalities(self) -> dict[int, Modality | None]:
        """Which modality, if any, each day of the week is open for."""
        modalities: dict[int, Modality | None] = {day: None for day in DAYS_OF_WEEK}
        for window in self.list_windows(include_inactive=False):
            modalities[window.day_of_week] = Modality(window.modality)
        return modalities

    def save(
        self,
        day_of_week: int,
        modality: Modality,
        start_minute: int,
        end_minute: int,
        slot_interval_minutes: int | None = None,
        actor: str | None = None,
    ) -> AvailabilityWindow:
        """Create or replace the window for ``(day_of_week, modality)`` and activate it."""
        interval = config.DEFAULT_SLOT_INTERVAL_MINUTES if slot_interval_minutes is None else slot_interval_minutes
        validate_window_fields(day_of_week, start_minute, end_minute, interval)

        with _window_write_lock:
            try:
                self._ensure_day_exclusive(day_of_week, modality, exclude_window_id=None)
                window = self.db.query(AvailabilityWindow).filter(
                    AvailabilityWindow.day_of_week == day_of_week,
                    AvailabilityWindow.modality == modality.value,
                ).first()
                if window is None:
                    window = AvailabilityWindow(
                        day_of_week=day_of_week,
                        modality=modality.value,
                        created_by=actor,
                    )
                    self.db.add(window)

                window.start_minute = start_minute
                window.end_minute = end_minute
                window.slot_interval_minutes = interval
                window.active = True
                window.updated_by = actor
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(window)
        logger.info('Saved %s window for day %s: %s-%s', modality.value, day_of_week,
                    format_minutes(start_minute), format_minutes(end_minute))
        return window

    def update(
        self,
        window_id: int,
        *,
        day_of_week: int | None = None,
        modality: Modality | None = None,
        start_minute: int | None = None,
        end_minute: int | None = None,
        slot_interval_minutes: int | None = None,
        active: bool | None = None,
        actor: str | None = None,
    ) -> AvailabilityWindow:
        with _window_write_lock:
            try:
                window = self.get(window_id)
                new_day = window.day_of_week if day_of_week is None else day_of_week
                new_modality = Modality(window.modality) if modality is None else modality
                new_start = window.start_minute if start_minute is None else start_minute
                new_end = window.end_minute if end_minute is None else end_minute
                new_interval = window.slot_interval_minutes if slot_interval_minutes is None else slot_interval_minutes
                new_active = window.active if active is None else active

                validate_window_fields(new_day, new_start, new_end, new_interval)

                if (new_day, new_modality.value) != (window.day_of_week, window.modality):
                    duplicate = self.db.query(AvailabilityWindow).filter(
                        AvailabilityWindow.day_of_week == new_day,
                        AvailabilityWindow.modality == new_modality.value,
                        AvailabilityWindow.id != window.id,
                    ).first()
                    if duplicate is not None:
                        raise WindowConflict(
                            'A window already exists for this day and modality.',
                            day_of_week=new_day,
                            modality=new_modality.value,
                            window_id=duplicate.id,
                        )

                if new_active:
                    self._ensure_day_exclusive(new_day, new_modality, exclude_window_id=window.id)

                window.day_of_week = new_day
                window.modality = new_modality.value
                window.start_minute = new_start
                window.end_minute = new_end
                window.slot_interval_minutes = new_interval
                window.active = new_active
                window.updated_by = actor
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(window)
        logger.info('Updated availability window %s', window_id)
        return window

    def deactivate(self, window_id: int, actor: str | None = None) -> AvailabilityWindow:
        return self.update(window_id, active=False, actor=actor)

    def delete(self, window_id: int) -> None:
        with _window_write_lock:
            try:
                window = self.get(window_id)
                self.db.delete(window)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        logger.info('Deleted availability window %s', window_id)

    def _ensure_day_exclusive(self, day_of_week: int, modality: Modality, exclude_window_id: int | None) -> None:
        query = self.db.query(AvailabilityWindow).filter(
            AvailabilityWindow.day_of_week == day_of_week,
            AvailabilityWindow.modality != modality.value,
            AvailabilityWindow.active.is_(True),
        )
        if exclude_window_id is not None:
            query = query.filter(AvailabilityWindow.id != exclude_window_id)
        other = query.first()
        if other is not None:
            raise WindowConflict(
                f'Day {day_of_week} is already open for {other.modality} appointments.',
                day_of_week=day_of_week,
                requested_modality=modality.value,
                active_modality=other.modality,
                window_id=other.id,
            )
