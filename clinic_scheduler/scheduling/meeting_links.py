"""
Meeting-link collaborator.

Online appointments get a video link when they are confirmed. Providers
implement ``MeetingLinkProvider``; ``get_provider`` picks one by name.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date

from clinic_scheduler.core import config

_BASE36_DIGITS = '0123456789abcdefghijklmnopqrstuvwxyz'


@dataclass(frozen=True)
class MeetingRequest:
    booking_id: int
    date: date
    time: str
    duration_minutes: int
    attendee_contact: str


class MeetingLinkError(Exception):
    """Raised when a provider cannot produce a link."""


class MeetingLinkProvider(ABC):
    @abstractmethod
    def create_link(self, request: MeetingRequest) -> str:
        """Return an opaque link for the meeting or raise ``MeetingLinkError``."""


def _base36(value: int) -> str:
    if value == 0:
        return '0'
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return ''.join(reversed(digits))


class PlaceholderMeetingLinkProvider(MeetingLinkProvider):
    """Builds a unique, provider-shaped URL without calling any external API."""

    def __init__(self, base_url: str | None = None) -> None:
        self.base_url = (base_url or config.MEETING_LINK_BASE_URL).rstrip('/')

    def create_link(self, request: MeetingRequest) -> str:
        code = f'nwd-{request.booking_id}-{_base36(int(time.time() * 1000))}'
        return f'{self.base_url}/{code}'


def get_provider(name: str | None = None) -> MeetingLinkProvider | None:
    provider = (name or config.MEETING_LINK_PROVIDER).strip().lower()
    if provider == 'placeholder':
        return PlaceholderMeetingLinkProvider()
    if provider in {'', 'none', 'disabled'}:
        return None
    raise ValueError(f'Unsupported meeting link provider: {provider}')
