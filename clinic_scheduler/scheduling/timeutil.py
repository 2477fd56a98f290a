"""Conversions between wall-clock values and integer minutes of the day."""

from datetime import date, datetime, time, timedelta

MINUTES_PER_DAY = 24 * 60


def parse_minutes(value: str | time | int) -> int:
    """Normalize ``"HH:MM"``, ``"HH:MM:SS"``, ``time`` or minutes to minutes since midnight.

    ``"24:00"`` is accepted as the end of the day.
    """
    if isinstance(value, bool):
        raise ValueError(f'Invalid time of day: {value!r}')
    if isinstance(value, int):
        minutes = value
    elif isinstance(value, time):
        minutes = value.hour * 60 + value.minute
    elif not isinstance(value, str):
        raise ValueError(f'Invalid time of day: {value!r}')
    else:
        parts = value.strip().split(':')
        if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
            raise ValueError(f'Invalid time of day: {value!r}')
        hours, mins = int(parts[0]), int(parts[1])
        if mins >= 60 or (hours == 24 and mins != 0):
            raise ValueError(f'Invalid time of day: {value!r}')
        minutes = hours * 60 + mins

    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValueError(f'Time of day out of range: {value!r}')
    return minutes


def format_minutes(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f'{hours:02d}:{mins:02d}'


def minutes_to_time(minutes: int) -> time:
    if minutes >= MINUTES_PER_DAY:
        return time(23, 59)
    hours, mins = divmod(minutes, 60)
    return time(hours, mins)


def combine(on_date: date, minutes: int) -> datetime:
    return datetime.combine(on_date, time(0, 0)) + timedelta(minutes=minutes)


def day_of_week(on_date: date) -> int:
    """Day index with Sunday as 0, the convention availability windows use."""
    return (on_date.weekday() + 1) % 7


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600
