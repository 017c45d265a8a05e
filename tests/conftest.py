"""Shared fixtures: an app on a throwaway SQLite file with one resource and a small catalog."""

from datetime import date, datetime, timedelta
from typing import Optional

import pytest

from app import create_app
from config import TestConfig
from models import db, Booking, Resource, Service

DAY = date(2026, 3, 10)


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "bookings.db")

    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def resource(app):
    r = Resource(name="Chair 1")
    db.session.add(r)
    db.session.commit()
    return r


@pytest.fixture
def services(app):
    haircut = Service(name="Haircut", duration_minutes=45)
    color = Service(name="Color 90", duration_minutes=90)
    db.session.add_all([haircut, color])
    db.session.commit()
    return {"haircut": haircut, "color": color}


@pytest.fixture
def svc(app, resource, services):
    return app.extensions["booking_service"]


def make_booking(
    hhmm: str,
    duration: int = 45,
    day: date = DAY,
    status: str = "confirmed",
    booking_id: Optional[int] = None,
    resource_id: int = 1,
    legacy: bool = False,
) -> Booking:
    """Unsaved Booking; ``legacy`` leaves start/end empty like old rows."""
    hour, minute = (int(p) for p in hhmm.split(":"))
    start = datetime(day.year, day.month, day.day, hour, minute)
    return Booking(
        id=booking_id,
        resource_id=resource_id,
        client_name="Test Client",
        date=day,
        time=hhmm,
        duration_minutes=duration,
        start_time=None if legacy else start,
        end_time=None if legacy else start + timedelta(minutes=duration),
        status=status,
    )


def booking_payload(time: str = "10:00", service: str = "Haircut", **extra) -> dict:
    payload = {
        "name": "Ana Perez",
        "phone": "+56 9 1234 5678",
        "email": "ana@example.com",
        "date": DAY.isoformat(),
        "time": time,
        "service": service,
    }
    payload.update(extra)
    return payload
