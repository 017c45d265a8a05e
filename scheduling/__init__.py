from .errors import (
    BookingError,
    ConfigurationError,
    ConflictError,
    DataIntegrityError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from .slots import OperatingWindow, generate_slots
from .conflicts import Interval, booking_interval, find_conflict, is_available, overlaps
from .availability import (
    AvailabilityResult,
    Slot,
    SlotCheck,
    check_slot,
    get_availability,
    list_available_slots,
    month_overview,
)
from .booking import BookingInput, BookingService, BookingUpdate
from .settings import Settings
from .store import BookingStore
