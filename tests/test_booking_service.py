"""Tests for the booking commit protocol against a real (SQLite) database."""

import random
from datetime import date, datetime
from itertools import combinations

import pytest
from sqlalchemy.exc import OperationalError

from models import db, Booking, Resource
from scheduling.booking import BookingService
from scheduling.errors import ConflictError, NotFoundError, TransientError, ValidationError
from scheduling.settings import Settings
from scheduling.store import BookingStore, is_transient_failure
from tests.conftest import DAY, booking_payload


@pytest.fixture
def unchecked(svc):
    """Same store, advisory pre-check switched off: only the database guards overlaps."""
    return BookingService(svc.store, Settings(precheck=False))


class TestCreateBooking:

    def test_commits_with_computed_range(self, svc, resource):
        booking = svc.create_booking(booking_payload("10:00"))

        assert booking.id is not None
        assert booking.resource_id == resource.id
        assert booking.start_time == datetime(2026, 3, 10, 10, 0)
        assert booking.end_time == datetime(2026, 3, 10, 10, 45)
        assert booking.duration_minutes == 45
        assert booking.status == "confirmed"
        assert booking.service_name == "Haircut"

    def test_duration_comes_from_catalog(self, svc, services):
        booking = svc.create_booking(booking_payload("14:00", service="Color 90"))
        assert booking.duration_minutes == 90
        assert booking.end_time == datetime(2026, 3, 10, 15, 30)

    def test_service_by_id(self, svc, services):
        payload = booking_payload("14:00", service=None, service_id=services["color"].id)
        assert svc.create_booking(payload).duration_minutes == 90

    def test_service_name_match_is_case_insensitive(self, svc):
        assert svc.create_booking(booking_payload("10:00", service="haircut")).service_name == "Haircut"

    def test_single_digit_hour_is_normalised(self, svc):
        assert svc.create_booking(booking_payload("9:00")).time == "09:00"

    def test_pending_status_accepted(self, svc):
        assert svc.create_booking(booking_payload(status="pending")).status == "pending"

    @pytest.mark.parametrize("missing", ["name", "date", "time"])
    def test_missing_required_field(self, svc, missing):
        payload = booking_payload()
        del payload[missing]
        with pytest.raises(ValidationError) as exc:
            svc.create_booking(payload)
        assert missing in exc.value.fields

    def test_service_required(self, svc):
        payload = booking_payload()
        del payload["service"]
        with pytest.raises(ValidationError):
            svc.create_booking(payload)

    @pytest.mark.parametrize("field,value", [
        ("time", "25:00"),
        ("time", "noon"),
        ("date", "10/03/2026"),
        ("status", "completed"),
        ("resource_id", "chair"),
    ])
    def test_malformed_fields(self, svc, field, value):
        with pytest.raises(ValidationError) as exc:
            svc.create_booking(booking_payload(**{field: value}))
        assert field in exc.value.fields

    def test_unknown_fields_rejected(self, svc):
        with pytest.raises(ValidationError) as exc:
            svc.create_booking(booking_payload(services=[{"name": "Haircut", "duration": 45}]))
        assert "services" in exc.value.fields

    @pytest.mark.parametrize("payload", [None, [], "10:00"])
    def test_body_must_be_an_object(self, svc, payload):
        with pytest.raises(ValidationError):
            svc.create_booking(payload)

    def test_unknown_service(self, svc):
        with pytest.raises(ValidationError):
            svc.create_booking(booking_payload(service="Haircut 90"))

    def test_unknown_resource(self, svc):
        with pytest.raises(NotFoundError):
            svc.create_booking(booking_payload(resource_id=404))

    @pytest.mark.parametrize("hhmm", ["08:15", "18:30", "19:00"])
    def test_outside_operating_hours(self, svc, hhmm):
        with pytest.raises(ValidationError):
            svc.create_booking(booking_payload(hhmm))

    def test_last_slot_of_the_day_fits(self, svc):
        assert svc.create_booking(booking_payload("18:15")).end_time == datetime(2026, 3, 10, 19, 0)


class TestConflicts:

    def test_overlap_rejected_by_precheck(self, svc):
        svc.create_booking(booking_payload("10:00"))
        with pytest.raises(ConflictError) as exc:
            svc.create_booking(booking_payload("10:30"))
        assert exc.value.message == "Time slot already booked or overlapping"
        assert Booking.query.count() == 1

    def test_touching_booking_accepted(self, svc):
        svc.create_booking(booking_payload("10:00"))
        svc.create_booking(booking_payload("10:45"))
        svc.create_booking(booking_payload("09:15"))
        assert Booking.query.count() == 3

    def test_database_rejects_overlap_without_precheck(self, unchecked):
        unchecked.create_booking(booking_payload("10:00", service="Color 90"))
        with pytest.raises(ConflictError):
            unchecked.create_booking(booking_payload("11:00"))
        assert Booking.query.count() == 1

    def test_database_rejects_exact_duplicate(self, unchecked):
        unchecked.create_booking(booking_payload("10:00"))
        with pytest.raises(ConflictError):
            unchecked.create_booking(booking_payload("10:00"))

    def test_other_resource_is_independent(self, unchecked, resource):
        other = Resource(name="Chair 2")
        db.session.add(other)
        db.session.commit()

        unchecked.create_booking(booking_payload("10:00", resource_id=resource.id))
        unchecked.create_booking(booking_payload("10:00", resource_id=other.id))
        assert Booking.query.count() == 2

    def test_cancelled_booking_frees_the_range(self, svc, unchecked):
        first = svc.create_booking(booking_payload("10:00"))
        svc.change_status(first.id, "cancelled")

        assert unchecked.create_booking(booking_payload("10:00")).id != first.id

    def test_session_usable_after_conflict(self, unchecked):
        unchecked.create_booking(booking_payload("10:00"))
        with pytest.raises(ConflictError):
            unchecked.create_booking(booking_payload("10:15"))
        assert unchecked.create_booking(booking_payload("11:00")).id is not None

    def test_no_overlap_invariant_holds_after_random_traffic(self, unchecked, resource):
        other = Resource(name="Chair 2")
        db.session.add(other)
        db.session.commit()

        rng = random.Random(1234)
        times = ["%02d:%02d" % (h, m) for h in range(9, 17) for m in (0, 15, 30, 45)]
        for _ in range(60):
            try:
                if rng.random() < 0.7 or Booking.query.count() == 0:
                    unchecked.create_booking(booking_payload(
                        rng.choice(times),
                        service=rng.choice(["Haircut", "Color 90"]),
                        resource_id=rng.choice([resource.id, other.id]),
                    ))
                else:
                    target = rng.choice(Booking.query.all())
                    if rng.random() < 0.2:
                        unchecked.change_status(target.id, "cancelled")
                    else:
                        unchecked.update_booking(target.id, {"time": rng.choice(times)})
            except (ConflictError, ValidationError):
                pass

        active = Booking.query.filter(Booking.status != "cancelled").all()
        assert active
        for a, b in combinations(active, 2):
            if a.resource_id == b.resource_id:
                assert not (a.start_time < b.end_time and a.end_time > b.start_time), (a.id, b.id)


class TestUpdateBooking:

    def test_time_change_keeps_duration(self, svc):
        booking = svc.create_booking(booking_payload("10:00", service="Color 90"))
        updated = svc.update_booking(booking.id, {"time": "13:00"})

        assert updated.time == "13:00"
        assert updated.start_time == datetime(2026, 3, 10, 13, 0)
        assert updated.end_time == datetime(2026, 3, 10, 14, 30)

    def test_date_only_reuses_time(self, svc):
        booking = svc.create_booking(booking_payload("10:00"))
        updated = svc.update_booking(booking.id, {"date": "2026-03-12"})

        assert updated.date == date(2026, 3, 12)
        assert updated.time == "10:00"
        assert updated.start_time == datetime(2026, 3, 12, 10, 0)
        assert updated.end_time == datetime(2026, 3, 12, 10, 45)

    def test_shift_overlapping_own_old_range(self, svc):
        booking = svc.create_booking(booking_payload("10:00"))
        assert svc.update_booking(booking.id, {"time": "10:15"}).start_time == datetime(2026, 3, 10, 10, 15)

    def test_reschedule_onto_another_booking(self, svc):
        svc.create_booking(booking_payload("10:00"))
        moving = svc.create_booking(booking_payload("12:00"))

        with pytest.raises(ConflictError):
            svc.update_booking(moving.id, {"time": "10:30"})

        db.session.expire_all()
        assert db.session.get(Booking, moving.id).time == "12:00"

    def test_database_rejects_reschedule_without_precheck(self, svc, unchecked):
        svc.create_booking(booking_payload("10:00"))
        moving = svc.create_booking(booking_payload("12:00"))

        with pytest.raises(ConflictError):
            unchecked.update_booking(moving.id, {"time": "10:30"})

        db.session.expire_all()
        assert db.session.get(Booking, moving.id).start_time == datetime(2026, 3, 10, 12, 0)

    def test_notes_only(self, svc):
        booking = svc.create_booking(booking_payload("10:00"))
        assert svc.update_booking(booking.id, {"notes": "Prefers scissors"}).notes == "Prefers scissors"

    def test_legacy_row_gets_timestamps(self, svc, resource):
        legacy = Booking(resource_id=resource.id, client_name="Old", date=DAY, time="15:00",
                         duration_minutes=None, status="confirmed")
        db.session.add(legacy)
        db.session.commit()

        updated = svc.update_booking(legacy.id, {"time": "16:00"})
        assert updated.duration_minutes == 45
        assert updated.end_time == datetime(2026, 3, 10, 16, 45)

    def test_rejects_unknown_fields(self, svc):
        booking = svc.create_booking(booking_payload("10:00"))
        with pytest.raises(ValidationError):
            svc.update_booking(booking.id, {"duration": 120})

    def test_missing_booking(self, svc):
        with pytest.raises(NotFoundError):
            svc.update_booking(999, {"time": "10:00"})


class TestStatusTransitions:

    def test_confirmed_to_completed(self, svc):
        booking = svc.create_booking(booking_payload())
        assert svc.change_status(booking.id, "completed").status == "completed"

    def test_completed_is_terminal(self, svc):
        booking = svc.create_booking(booking_payload())
        svc.change_status(booking.id, "completed")
        with pytest.raises(ValidationError):
            svc.change_status(booking.id, "pending")

    def test_cancel_sets_timestamp_and_reactivation_clears_it(self, svc):
        booking = svc.create_booking(booking_payload())
        assert svc.change_status(booking.id, "cancelled").cancelled_at is not None
        assert svc.change_status(booking.id, "confirmed").cancelled_at is None

    def test_reactivation_checks_for_overlap(self, svc, unchecked):
        first = svc.create_booking(booking_payload("10:00"))
        svc.change_status(first.id, "cancelled")
        svc.create_booking(booking_payload("10:15"))

        with pytest.raises(ConflictError):
            svc.change_status(first.id, "confirmed")
        with pytest.raises(ConflictError):
            unchecked.change_status(first.id, "pending")

    @pytest.mark.parametrize("status", [None, "", "no-show", "CONFIRMED"])
    def test_invalid_status(self, svc, status):
        booking = svc.create_booking(booking_payload())
        with pytest.raises(ValidationError):
            svc.change_status(booking.id, status)

    def test_missing_booking(self, svc):
        with pytest.raises(NotFoundError):
            svc.change_status(999, "cancelled")


class TestReadsAndDelete:

    def test_get_and_list(self, svc):
        a = svc.create_booking(booking_payload("12:00"))
        b = svc.create_booking(booking_payload("10:00"))
        svc.create_booking(booking_payload("10:00", date="2026-03-11"))

        assert svc.get_booking(a.id) is a
        assert [x.id for x in svc.list_bookings(day=DAY)] == [b.id, a.id]
        assert len(svc.list_bookings()) == 3
        assert svc.list_bookings(status="cancelled") == []

    def test_list_rejects_unknown_status(self, svc):
        with pytest.raises(ValidationError):
            svc.list_bookings(status="archived")

    def test_delete(self, svc):
        booking = svc.create_booking(booking_payload())
        booking_id = booking.id
        svc.delete_booking(booking_id)

        with pytest.raises(NotFoundError):
            svc.get_booking(booking_id)
        with pytest.raises(NotFoundError):
            svc.delete_booking(booking_id)


class _FlakySession:
    """Stands in for a session whose connection times out."""

    def __init__(self):
        self.rolled_back = False

    def add(self, obj):
        pass

    def flush(self):
        raise OperationalError("INSERT INTO bookings ...", {}, Exception("connection timed out"))

    def get(self, model, ident):
        raise OperationalError("SELECT ...", {}, Exception("server closed the connection"))

    def rollback(self):
        self.rolled_back = True


class TestTransientFailures:

    def test_write_timeout_is_transient_not_conflict(self):
        session = _FlakySession()
        store = BookingStore(session, retry_after_seconds=3)
        booking = Booking(resource_id=1, client_name="X", date=DAY, time="10:00",
                          start_time=datetime(2026, 3, 10, 10), end_time=datetime(2026, 3, 10, 10, 45))

        with pytest.raises(TransientError) as exc:
            store.reserve(booking)
        assert not isinstance(exc.value, ConflictError)
        assert exc.value.retry_after == 3
        assert session.rolled_back

    def test_read_failure_is_transient(self):
        store = BookingStore(_FlakySession())
        with pytest.raises(TransientError):
            store.get(1)

    def test_schema_fault_is_not_retryable(self):
        class _MissingTable(_FlakySession):
            def get(self, model, ident):
                raise OperationalError("SELECT ...", {}, Exception("no such table: bookings"))

        session = _MissingTable()
        with pytest.raises(OperationalError):
            BookingStore(session).get(1)
        assert session.rolled_back

    @pytest.mark.parametrize("message", ["database is locked", "could not connect to server"])
    def test_lock_and_connection_failures_are_transient(self, message):
        assert is_transient_failure(OperationalError("SELECT 1", {}, Exception(message)))

    def test_sqlstate_decides_when_present(self):
        class _PgError(Exception):
            def __init__(self, pgcode):
                super().__init__("error")
                self.pgcode = pgcode

        assert is_transient_failure(OperationalError("SELECT 1", {}, _PgError("40P01")))
        assert is_transient_failure(OperationalError("SELECT 1", {}, _PgError("08006")))
        assert not is_transient_failure(OperationalError("SELECT 1", {}, _PgError("42P01")))
