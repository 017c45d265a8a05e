"""
Error taxonomy of the booking core.

Every user-facing failure of the commit protocol is a ``BookingError``;
the Flask error handler in ``app.py`` renders them with their status code.
Only ``TransientError`` is safe to retry as-is.
"""

from typing import Optional


class BookingError(Exception):
    status_code = 400
    code = "booking_error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        payload.update({k: v for k, v in self.details.items() if v is not None})
        return payload


class ValidationError(BookingError):
    """Malformed or missing input. Never retried."""
    status_code = 400
    code = "validation_error"

    def __init__(self, message: str, fields: Optional[dict] = None):
        super().__init__(message, fields=fields)
        self.fields = fields or {}


class NotFoundError(BookingError):
    status_code = 404
    code = "not_found"


class ConflictError(BookingError):
    """The requested range overlaps a non-cancelled booking of the same resource."""
    status_code = 409
    code = "conflict"

    def __init__(self, message: str = "Time slot already booked or overlapping", **details):
        details.setdefault("hint", "Please pick another time")
        super().__init__(message, **details)


class TransientError(BookingError):
    """Storage unreachable or timed out. Nothing was committed; safe to resubmit."""
    status_code = 503
    code = "transient"

    def __init__(self, message: str = "Temporary problem saving the booking, please try again",
                 retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ConfigurationError(Exception):
    """Invalid operating window or other deployment mistake. Fatal, not user facing."""


class DataIntegrityError(Exception):
    """A stored row cannot be interpreted (e.g. an unparseable legacy ``time``). Not user facing."""
