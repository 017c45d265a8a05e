"""
Booking commit protocol.

Validating -> Reserving -> Committed, or Rejected (ValidationError) /
Conflicted (ConflictError). The availability pre-check only gives early
feedback; two clients can both pass it, so the insert itself is left to
the database constraint, and its verdict is final.
"""

import datetime as dt
import logging
from datetime import timedelta
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from models.booking import Booking, BOOKING_STATUSES
from .catalog import duration_for, resolve_resource, resolve_service
from .conflicts import Interval, find_conflict
from .errors import ConflictError, NotFoundError, ValidationError
from .settings import Settings
from .slots import OperatingWindow, combine, normalize_hhmm

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "cancelled": {"pending", "confirmed"},
    "completed": set(),
}


def _hhmm(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return normalize_hhmm(value)
    except ValidationError:
        raise ValueError("Use HH:MM") from None


class BookingInput(BaseModel):
    """Validated booking request from the public booking page."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=40)
    email: Optional[str] = Field(default=None, max_length=255)
    date: dt.date
    time: str
    service: Optional[str] = Field(default=None, max_length=120)
    service_id: Optional[int] = None
    resource_id: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[Literal["pending", "confirmed"]] = None

    @field_validator("time")
    @classmethod
    def normalize_time(cls, value):
        return _hhmm(value)

    @model_validator(mode="after")
    def service_given(self):
        if not self.service and self.service_id is None:
            raise ValueError("service or service_id is required")
        return self


class BookingUpdate(BaseModel):
    """Partial staff update: reschedule, status change, notes."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    date: Optional[dt.date] = None
    time: Optional[str] = None
    status: Optional[Literal["pending", "confirmed", "completed", "cancelled"]] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("time")
    @classmethod
    def normalize_time(cls, value):
        return _hhmm(value)


def _validate(model, payload):
    if payload is None:
        payload = {}
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        fields = {}
        for err in exc.errors():
            key = ".".join(str(p) for p in err["loc"]) or "body"
            fields[key] = err["msg"]
        raise ValidationError("Invalid booking data", fields=fields) from None


class BookingService:
    def __init__(self, store, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or Settings()

    # ---------- reads ----------
    def get_booking(self, booking_id: int) -> Booking:
        booking = self.store.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", booking_id=booking_id)
        return booking

    def list_bookings(self, day=None, resource_id=None, status=None):
        if status and status not in BOOKING_STATUSES:
            raise ValidationError("Invalid status value", fields={"status": f"One of {', '.join(BOOKING_STATUSES)}"})
        return self.store.list_bookings(day=day, resource_id=resource_id, status=status)

    # ---------- create ----------
    def create_booking(self, payload) -> Booking:
        data = _validate(BookingInput, payload)

        resource = resolve_resource(self.store, data.resource_id)
        service = resolve_service(self.store, data.service_id, data.service)
        duration = duration_for(service, self.settings)

        start = combine(data.date, data.time)
        end = start + timedelta(minutes=duration)
        self._check_operating_hours(resource, data.date, start, end)

        booking = Booking(
            resource_id=resource.id,
            service_id=service.id,
            service_name=service.name,
            client_name=data.name,
            client_phone=data.phone,
            client_email=data.email,
            notes=data.notes,
            date=data.date,
            time=data.time,
            duration_minutes=duration,
            start_time=start,
            end_time=end,
            status=data.status or self.settings.default_status,
        )

        if self.settings.precheck:
            self._precheck(resource.id, data.date, Interval(start, end))

        self.store.reserve(booking)
        logger.info(
            "Booking %s committed resource=%s %s %s-%s",
            booking.id, resource.id, data.date, data.time, end.strftime("%H:%M"),
        )
        return booking

    # ---------- update / reschedule ----------
    def update_booking(self, booking_id: int, payload) -> Booking:
        changes = _validate(BookingUpdate, payload)
        booking = self.get_booking(booking_id)

        new_date = changes.date or booking.date
        new_time = changes.time or booking.time
        new_status = changes.status or booking.status
        if changes.status and changes.status != booking.status:
            self._check_transition(booking.status, changes.status)

        rescheduled = new_date != booking.date or new_time != booking.time
        reactivated = booking.status == "cancelled" and new_status != "cancelled"

        start, end = booking.start_time, booking.end_time
        if rescheduled or start is None or end is None:
            # Existing duration is kept; only the position moves
            duration = booking.duration_minutes or self.settings.default_duration_minutes
            start = combine(new_date, new_time)
            end = start + timedelta(minutes=duration)
            if rescheduled:
                resource = resolve_resource(self.store, booking.resource_id)
                self._check_operating_hours(resource, new_date, start, end)

        if (rescheduled or reactivated) and new_status != "cancelled" and self.settings.precheck:
            self._precheck(booking.resource_id, new_date, Interval(start, end), exclude_booking_id=booking.id)

        booking.date = new_date
        booking.time = new_time
        booking.start_time = start
        booking.end_time = end
        booking.duration_minutes = booking.duration_minutes or self.settings.default_duration_minutes
        self._apply_status(booking, new_status)
        if changes.notes is not None:
            booking.notes = changes.notes

        self.store.save(booking)
        if rescheduled:
            logger.info("Booking %s rescheduled to %s %s", booking.id, new_date, new_time)
        return booking

    def change_status(self, booking_id: int, status: Optional[str]) -> Booking:
        if not status:
            raise ValidationError("Status is required", fields={"status": "Required"})
        if status not in BOOKING_STATUSES:
            raise ValidationError(
                "Invalid status value",
                fields={"status": f"One of {', '.join(BOOKING_STATUSES)}"},
            )
        return self.update_booking(booking_id, {"status": status})

    def delete_booking(self, booking_id: int) -> None:
        booking = self.get_booking(booking_id)
        self.store.delete(booking)
        logger.info("Booking %s deleted", booking_id)

    # ---------- helpers ----------
    def _precheck(self, resource_id: int, day, candidate: Interval, exclude_booking_id=None):
        conflict = find_conflict(
            candidate,
            self.store.bookings_for_day(resource_id, day),
            self.store.blocks_for_day(resource_id, day),
            exclude_booking_id=exclude_booking_id,
            default_duration=self.settings.default_duration_minutes,
        )
        if conflict is not None:
            logger.info(
                "Pre-check conflict resource=%s %s %s-%s with %s %s",
                resource_id, day, candidate.start.strftime("%H:%M"), candidate.end.strftime("%H:%M"),
                type(conflict).__name__, conflict.id,
            )
            raise ConflictError(
                resource_id=resource_id,
                date=day.isoformat(),
                time=candidate.start.strftime("%H:%M"),
            )

    def _check_operating_hours(self, resource, day, start, end):
        window = OperatingWindow.for_resource(resource, self.settings)
        if start < window.opens_at(day) or end > window.closes_at(day):
            raise ValidationError(
                "Outside operating hours",
                fields={"time": f"Bookable between {window.open_hour:02d}:00 and {window.close_hour:02d}:00"},
            )

    @staticmethod
    def _check_transition(current: str, target: str):
        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise ValidationError(
                f"Cannot change status from {current} to {target}",
                fields={"status": f"Not allowed from {current}"},
            )

    @staticmethod
    def _apply_status(booking: Booking, status: str):
        if status == booking.status:
            return
        booking.status = status
        if status == "cancelled":
            booking.cancelled_at = dt.datetime.utcnow()
        elif booking.cancelled_at is not None:
            booking.cancelled_at = None
