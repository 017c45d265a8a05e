from .db import db
from .resource import Resource
from .service import Service
from .booking import Booking, BOOKING_STATUSES
from .time_block import TimeBlock
from .audit_log import AuditLog
