"""
Slot grid generation.

A day's operating window is cut into fixed-size candidate start times.
Slots that would run past closing are dropped, never rounded.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from .errors import ConfigurationError, ValidationError

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def format_minutes(total_minutes: int) -> str:
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def parse_hhmm(value: str) -> time:
    """Parse ``H:MM`` / ``HH:MM`` into a ``time``; raises ValidationError."""
    match = _TIME_RE.match((value or "").strip())
    if not match:
        raise ValidationError("Invalid time. Use HH:MM", fields={"time": "Use HH:MM"})
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError("Invalid time. Use HH:MM", fields={"time": "Out of range"})
    return time(hour, minute)


def normalize_hhmm(value: str) -> str:
    return parse_hhmm(value).strftime("%H:%M")


def combine(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, parse_hhmm(hhmm))


def generate_slots(open_hour: int, close_hour: int, interval_minutes: int) -> List[str]:
    """
    Ordered ``HH:MM`` start times from ``open_hour:00`` stepping by
    ``interval_minutes``. A slot is kept only if it ends at or before
    ``close_hour:00``.

    >>> generate_slots(9, 11, 45)
    ['09:00', '09:45']
    """
    if interval_minutes is None or interval_minutes <= 0:
        raise ConfigurationError(f"interval_minutes must be positive, got {interval_minutes!r}")
    if not (0 <= open_hour < close_hour <= 24):
        raise ConfigurationError(
            f"Operating window must satisfy 0 <= open < close <= 24, got {open_hour}-{close_hour}"
        )

    close_minutes = close_hour * 60
    slots = []
    current = open_hour * 60
    while current + interval_minutes <= close_minutes:
        slots.append(format_minutes(current))
        current += interval_minutes
    return slots


@dataclass(frozen=True)
class OperatingWindow:
    open_hour: int
    close_hour: int
    interval_minutes: int

    def slots(self) -> List[str]:
        return generate_slots(self.open_hour, self.close_hour, self.interval_minutes)

    def opens_at(self, day: date) -> datetime:
        return datetime.combine(day, time.min) + timedelta(hours=self.open_hour)

    def closes_at(self, day: date) -> datetime:
        return datetime.combine(day, time.min) + timedelta(hours=self.close_hour)

    @classmethod
    def for_resource(cls, resource, settings) -> "OperatingWindow":
        """Resource-level hours win over the application defaults."""
        def pick(override: Optional[int], default: int) -> int:
            return default if override is None else override

        return cls(
            open_hour=pick(getattr(resource, "open_hour", None), settings.open_hour),
            close_hour=pick(getattr(resource, "close_hour", None), settings.close_hour),
            interval_minutes=pick(getattr(resource, "interval_minutes", None), settings.interval_minutes),
        )


def check_working_hours(settings, open_hour=None, close_hour=None, interval_minutes=None) -> OperatingWindow:
    """Resource hour overrides merged over the defaults; ConfigurationError if they yield no valid grid."""
    window = OperatingWindow(
        open_hour=settings.open_hour if open_hour is None else open_hour,
        close_hour=settings.close_hour if close_hour is None else close_hour,
        interval_minutes=settings.interval_minutes if interval_minutes is None else interval_minutes,
    )
    window.slots()
    return window
