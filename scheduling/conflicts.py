"""
Overlap detection between a candidate slot and a resource's existing bookings.

Every range is half-open, ``[start, end)``: a booking that ends exactly when
another starts does not conflict with it. The result is advisory; the
database constraint on ``bookings`` is what actually prevents double booking.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, NamedTuple, Optional

from .errors import DataIntegrityError, ValidationError
from .slots import combine


DEFAULT_DURATION_MINUTES = 45


class Interval(NamedTuple):
    start: datetime
    end: datetime


def overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and a.end > b.start


def candidate_interval(day: date, hhmm: str, duration_minutes: int) -> Interval:
    start = combine(day, hhmm)
    return Interval(start, start + timedelta(minutes=duration_minutes))


def booking_interval(booking, default_duration: int = DEFAULT_DURATION_MINUTES) -> Interval:
    """
    Range occupied by a stored booking (or time block).

    Precomputed ``start_time``/``end_time`` win. Legacy rows without them are
    rebuilt from ``date`` + ``time`` + ``duration_minutes``.
    """
    start = getattr(booking, "start_time", None)
    end = getattr(booking, "end_time", None)
    if start is not None and end is not None:
        return Interval(start, end)

    hhmm = getattr(booking, "time", None)
    day = getattr(booking, "date", None)
    booking_id = getattr(booking, "id", None)
    if not hhmm or day is None:
        raise DataIntegrityError(f"Booking {booking_id} has neither start/end nor date/time")
    duration = getattr(booking, "duration_minutes", None) or default_duration
    try:
        return candidate_interval(day, hhmm, duration)
    except ValidationError:
        raise DataIntegrityError(f"Booking {booking_id} has an unreadable time {hhmm!r}") from None


def _is_blocking(booking) -> bool:
    return getattr(booking, "status", None) != "cancelled"


def find_conflict(
    candidate: Interval,
    bookings: Iterable,
    blocks: Iterable = (),
    exclude_booking_id: Optional[int] = None,
    default_duration: int = DEFAULT_DURATION_MINUTES,
):
    """Return the first booking or block overlapping ``candidate``, else None."""
    for booking in bookings:
        if not _is_blocking(booking):
            continue
        if exclude_booking_id is not None and getattr(booking, "id", None) == exclude_booking_id:
            continue
        if overlaps(candidate, booking_interval(booking, default_duration)):
            return booking

    for block in blocks:
        if overlaps(candidate, Interval(block.start_time, block.end_time)):
            return block

    return None


def is_available(
    day: date,
    hhmm: str,
    duration_minutes: int,
    bookings: Iterable,
    blocks: Iterable = (),
    exclude_booking_id: Optional[int] = None,
    default_duration: int = DEFAULT_DURATION_MINUTES,
) -> bool:
    candidate = candidate_interval(day, hhmm, duration_minutes)
    conflict = find_conflict(
        candidate, bookings, blocks,
        exclude_booking_id=exclude_booking_id,
        default_duration=default_duration,
    )
    return conflict is None
