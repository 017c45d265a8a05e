"""
SQLAlchemy-backed storage for bookings.

The store is the serialization point of the system: ``reserve`` and ``save``
issue the write and let the database's no-overlap constraint decide.
Constraint violations come back as ``ConflictError``, connectivity problems
as ``TransientError``. The session is always rolled back first.
"""

import logging
from contextlib import contextmanager
from datetime import date
from functools import wraps
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from models.booking import Booking, NO_OVERLAP_CONSTRAINT
from models.resource import Resource
from models.service import Service
from models.time_block import TimeBlock
from .errors import ConflictError, TransientError

logger = logging.getLogger(__name__)

EXCLUSION_VIOLATION = "23P01"

# connection exceptions, serialization failure, deadlock, lock not available,
# statement timeout, admin shutdown, cannot connect now
TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03", "57014", "57P01", "57P03"}
TRANSIENT_MESSAGES = (
    "database is locked",
    "timeout",
    "timed out",
    "could not connect",
    "connection",
    "server closed",
)


def is_overlap_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode == EXCLUSION_VIOLATION:
        return True

    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) if diag is not None else None
    if constraint_name:
        return constraint_name == NO_OVERLAP_CONSTRAINT

    # SQLite trigger: RAISE(ABORT, 'bookings_no_overlap')
    return NO_OVERLAP_CONSTRAINT in str(orig if orig is not None else exc)


def is_transient_failure(exc) -> bool:
    """Lock, timeout and connectivity failures; schema or SQL mistakes are not."""
    if isinstance(exc, PoolTimeoutError):
        return True
    if getattr(exc, "connection_invalidated", False):
        return True

    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode:
        return pgcode.startswith("08") or pgcode in TRANSIENT_SQLSTATES

    message = str(orig if orig is not None else exc).lower()
    return any(fragment in message for fragment in TRANSIENT_MESSAGES)


def _storage_failure(store, exc, what):
    store.session.rollback()
    if not is_transient_failure(exc):
        logger.error("Storage failure in %s: %s", what, exc)
        raise exc
    logger.warning("Storage unavailable in %s: %s", what, exc)
    raise TransientError(retry_after=store.retry_after_seconds) from exc


def _reads_storage(fn):
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except (OperationalError, PoolTimeoutError) as exc:
            _storage_failure(self, exc, fn.__name__)
    return wrapper


class BookingStore:
    def __init__(self, session, retry_after_seconds: Optional[int] = None):
        self.session = session
        self.retry_after_seconds = retry_after_seconds

    # ---------- catalog ----------
    @_reads_storage
    def get_resource(self, resource_id: int) -> Optional[Resource]:
        return self.session.get(Resource, resource_id)

    @_reads_storage
    def active_resources(self) -> List[Resource]:
        return (
            self.session.query(Resource)
            .filter(Resource.is_active.is_(True))
            .order_by(Resource.id.asc())
            .all()
        )

    @_reads_storage
    def get_service(self, service_id: int) -> Optional[Service]:
        return self.session.get(Service, service_id)

    @_reads_storage
    def find_service(self, name: str) -> Optional[Service]:
        return (
            self.session.query(Service)
            .filter(func.lower(Service.name) == name.strip().lower())
            .first()
        )

    # ---------- bookings ----------
    @_reads_storage
    def get(self, booking_id: int) -> Optional[Booking]:
        return self.session.get(Booking, booking_id)

    @_reads_storage
    def bookings_for_day(self, resource_id: int, day: date) -> List[Booking]:
        return (
            self.session.query(Booking)
            .filter(
                Booking.resource_id == resource_id,
                Booking.date == day,
                Booking.status != "cancelled",
            )
            .order_by(Booking.time.asc())
            .all()
        )

    @_reads_storage
    def bookings_between(self, resource_id: int, first_day: date, last_day: date) -> List[Booking]:
        return (
            self.session.query(Booking)
            .filter(
                Booking.resource_id == resource_id,
                Booking.date >= first_day,
                Booking.date <= last_day,
                Booking.status != "cancelled",
            )
            .all()
        )

    @_reads_storage
    def list_bookings(self, day: Optional[date] = None, resource_id: Optional[int] = None,
                      status: Optional[str] = None, limit: int = 200) -> List[Booking]:
        q = self.session.query(Booking)
        if day is not None:
            q = q.filter(Booking.date == day)
        if resource_id is not None:
            q = q.filter(Booking.resource_id == resource_id)
        if status:
            q = q.filter(Booking.status == status)

        if day is not None:
            q = q.order_by(Booking.time.asc())
        else:
            q = q.order_by(Booking.date.desc(), Booking.time.asc())
        return q.limit(limit).all()

    # ---------- time blocks ----------
    @_reads_storage
    def blocks_for_day(self, resource_id: int, day: date) -> List[TimeBlock]:
        return self.blocks_between(resource_id, day, day)

    @_reads_storage
    def blocks_between(self, resource_id: int, first_day: date, last_day: date) -> List[TimeBlock]:
        return (
            self.session.query(TimeBlock)
            .filter(
                TimeBlock.date >= first_day,
                TimeBlock.date <= last_day,
                or_(TimeBlock.resource_id == resource_id, TimeBlock.resource_id.is_(None)),
            )
            .order_by(TimeBlock.start_time.asc())
            .all()
        )

    # ---------- writes ----------
    @contextmanager
    def _writing(self, booking: Booking):
        # Captured up front: rollback expires the instance's attributes
        resource_id, day, hhmm = booking.resource_id, booking.date, booking.time
        try:
            yield
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if is_overlap_violation(exc):
                logger.info(
                    "Storage rejected overlapping booking resource=%s date=%s time=%s",
                    resource_id, day, hhmm,
                )
                raise ConflictError(
                    resource_id=resource_id,
                    date=day.isoformat() if day else None,
                    time=hhmm,
                ) from exc
            raise
        except (OperationalError, PoolTimeoutError) as exc:
            _storage_failure(self, exc, f"write of booking on {day} {hhmm}")

    def reserve(self, booking: Booking) -> Booking:
        """Insert the booking; the database rejects it if the range is taken."""
        with self._writing(booking):
            self.session.add(booking)
            self.session.flush()
        return booking

    def save(self, booking: Booking) -> Booking:
        """Persist changes to an existing booking under the same constraint."""
        with self._writing(booking):
            self.session.flush()
        return booking

    def delete(self, booking: Booking) -> None:
        with self._writing(booking):
            self.session.delete(booking)
