"""
Availability of a resource for one day (or a month overview).

``list_available_slots`` is pure: it takes the day's bookings and blocks and
annotates every slot of the grid. ``get_availability`` loads those through
the store first. Results are a snapshot; a slot shown free can still be
taken before the client submits.
"""

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from .catalog import duration_for, resolve_resource, resolve_service
from .conflicts import DEFAULT_DURATION_MINUTES, Interval, booking_interval, candidate_interval, find_conflict
from .slots import OperatingWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    time: str
    available: bool

    def to_dict(self) -> dict:
        return {"time": self.time, "available": self.available}


@dataclass
class AvailabilityResult:
    date: date
    duration_minutes: int
    all_slots: List[Slot] = field(default_factory=list)
    resource_id: Optional[int] = None

    @property
    def available_slots(self) -> List[str]:
        return [s.time for s in self.all_slots if s.available]

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "resource_id": self.resource_id,
            "duration_minutes": self.duration_minutes,
            "availableSlots": self.available_slots,
            "allSlots": [s.to_dict() for s in self.all_slots],
        }


@dataclass
class SlotCheck:
    """Verdict for one requested start time."""
    date: date
    time: str
    end: str
    duration_minutes: int
    resource_id: int
    available: bool
    reason: Optional[str] = None
    conflict: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "time": self.time,
            "end": self.end,
            "duration_minutes": self.duration_minutes,
            "resource_id": self.resource_id,
            "available": self.available,
            "reason": self.reason,
            "conflict": self.conflict,
        }


def list_available_slots(
    day: date,
    duration_minutes: int,
    window: OperatingWindow,
    bookings: Iterable,
    blocks: Iterable = (),
    default_duration: int = DEFAULT_DURATION_MINUTES,
) -> AvailabilityResult:
    bookings = list(bookings)
    blocks = list(blocks)
    closes_at = window.closes_at(day)

    slots = []
    for hhmm in window.slots():
        candidate = candidate_interval(day, hhmm, duration_minutes)
        if candidate.end > closes_at:
            # The service would run past closing
            slots.append(Slot(hhmm, False))
            continue
        conflict = find_conflict(candidate, bookings, blocks, default_duration=default_duration)
        slots.append(Slot(hhmm, conflict is None))

    return AvailabilityResult(date=day, duration_minutes=duration_minutes, all_slots=slots)


def _requested_duration(store, settings, service_id, service_name, duration_minutes) -> int:
    if duration_minutes:
        return duration_minutes
    if service_id is None and not service_name:
        return settings.default_duration_minutes
    return duration_for(resolve_service(store, service_id, service_name), settings)


def get_availability(
    store,
    settings,
    day: date,
    resource_id: Optional[int] = None,
    service_id: Optional[int] = None,
    service_name: Optional[str] = None,
    duration_minutes: Optional[int] = None,
) -> AvailabilityResult:
    resource = resolve_resource(store, resource_id)
    duration = _requested_duration(store, settings, service_id, service_name, duration_minutes)
    window = OperatingWindow.for_resource(resource, settings)

    result = list_available_slots(
        day,
        duration,
        window,
        store.bookings_for_day(resource.id, day),
        store.blocks_for_day(resource.id, day),
        default_duration=settings.default_duration_minutes,
    )
    result.resource_id = resource.id

    logger.debug(
        "Availability resource=%s date=%s duration=%s free=%d/%d",
        resource.id, day, duration, len(result.available_slots), len(result.all_slots),
    )
    return result


def month_overview(
    store,
    settings,
    year: int,
    month: int,
    resource_id: Optional[int] = None,
    service_id: Optional[int] = None,
    service_name: Optional[str] = None,
) -> List[dict]:
    """Free-slot count per day of a month, from two range queries."""
    resource = resolve_resource(store, resource_id)
    duration = _requested_duration(store, settings, service_id, service_name, None)
    window = OperatingWindow.for_resource(resource, settings)

    last_day = calendar.monthrange(year, month)[1]
    first, last = date(year, month, 1), date(year, month, last_day)

    bookings_by_day = defaultdict(list)
    for b in store.bookings_between(resource.id, first, last):
        bookings_by_day[b.date].append(b)
    blocks_by_day = defaultdict(list)
    for blk in store.blocks_between(resource.id, first, last):
        blocks_by_day[blk.date].append(blk)

    out = []
    for n in range(1, last_day + 1):
        day = date(year, month, n)
        result = list_available_slots(
            day, duration, window,
            bookings_by_day.get(day, []),
            blocks_by_day.get(day, []),
            default_duration=settings.default_duration_minutes,
        )
        out.append({
            "date": day.isoformat(),
            "available": len(result.available_slots),
            "total": len(result.all_slots),
        })
    return out


def check_slot(
    store,
    settings,
    day: date,
    hhmm: str,
    resource_id: Optional[int] = None,
    service_id: Optional[int] = None,
    service_name: Optional[str] = None,
) -> SlotCheck:
    """Whether one start time is free for the service, and what it collides with if not."""
    resource = resolve_resource(store, resource_id)
    duration = _requested_duration(store, settings, service_id, service_name, None)
    window = OperatingWindow.for_resource(resource, settings)
    candidate = candidate_interval(day, hhmm, duration)

    result = SlotCheck(
        date=day,
        time=candidate.start.strftime("%H:%M"),
        end=candidate.end.strftime("%H:%M"),
        duration_minutes=duration,
        resource_id=resource.id,
        available=False,
    )

    if candidate.start < window.opens_at(day) or candidate.end > window.closes_at(day):
        result.reason = "outside_hours"
        return result

    blocks = store.blocks_for_day(resource.id, day)
    conflict = find_conflict(
        candidate,
        store.bookings_for_day(resource.id, day),
        blocks,
        default_duration=settings.default_duration_minutes,
    )
    if conflict is None:
        result.available = True
        return result

    if any(conflict is blk for blk in blocks):
        kind, span = "block", Interval(conflict.start_time, conflict.end_time)
    else:
        kind, span = "booking", booking_interval(conflict, settings.default_duration_minutes)
    result.reason = "conflict"
    result.conflict = {
        "id": conflict.id,
        "type": kind,
        "start": span.start.strftime("%H:%M"),
        "end": span.end.strftime("%H:%M"),
    }
    logger.debug("Slot check resource=%s %s %s taken by %s %s", resource.id, day, result.time, kind, conflict.id)
    return result
