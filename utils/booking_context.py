from flask import current_app

from scheduling.booking import BookingService
from scheduling.settings import Settings
from scheduling.store import BookingStore


def init_booking_service(app, session):
    """Build the booking core once per app; the session proxy is shared by all requests."""
    settings = Settings.from_config(app.config)
    store = BookingStore(session, retry_after_seconds=settings.retry_after_seconds)
    app.extensions["booking_service"] = BookingService(store, settings)
    return app.extensions["booking_service"]


def booking_service() -> BookingService:
    return current_app.extensions["booking_service"]
