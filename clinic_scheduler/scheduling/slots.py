"""
Slot generation.

Turns an availability window into discrete candidate slots. All arithmetic
is in minutes since midnight and slots are half-open ``[start, end)``.
"""

from typing import Iterator, NamedTuple

from clinic_scheduler.models.availability import AvailabilityWindow
from clinic_scheduler.scheduling.timeutil import format_minutes


class Slot(NamedTuple):
    start: int
    end: int

    def label(self) -> str:
        return f'{format_minutes(self.start)}-{format_minutes(self.end)}'


class SlotSequence:
    """Lazy slot sequence; every iteration starts again from the window start."""

    def __init__(self, window_start: int, window_end: int, interval_minutes: int) -> None:
        if interval_minutes <= 0:
            raise ValueError('Slot interval must be a positive number of minutes.')
        self.window_start = window_start
        self.window_end = window_end
        self.interval_minutes = interval_minutes

    def __iter__(self) -> Iterator[Slot]:
        current = self.window_start
        while current + self.interval_minutes <= self.window_end:
            yield Slot(current, current + self.interval_minutes)
            current += self.interval_minutes

    def __repr__(self) -> str:
        return (
            f'SlotSequence({format_minutes(self.window_start)}-{format_minutes(self.window_end)}, '
            f'every {self.interval_minutes}m)'
        )


def generate_slots(window_start: int, window_end: int, interval_minutes: int) -> SlotSequence:
    return SlotSequence(window_start, window_end, interval_minutes)


def generate_slots_for_window(window: AvailabilityWindow) -> SlotSequence:
    return generate_slots(window.start_minute, window.end_minute, window.slot_interval_minutes)
