from datetime import datetime

from sqlalchemy import DDL, event

from models.db import db

BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")

# Name shared by the PostgreSQL exclusion constraint and the SQLite triggers,
# so storage errors can be recognised on both dialects.
NO_OVERLAP_CONSTRAINT = "bookings_no_overlap"


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)
    service_name = db.Column(db.String(120), nullable=True)  # snapshot at booking time

    client_name = db.Column(db.String(120), nullable=False)
    client_phone = db.Column(db.String(40), nullable=True)
    client_email = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    date = db.Column(db.Date, nullable=False, index=True)
    time = db.Column(db.String(5), nullable=False)  # HH:MM
    duration_minutes = db.Column(db.Integer, nullable=True)  # NULL on legacy rows

    # NULL on legacy rows; availability then rebuilds the range from date + time + duration
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)

    status = db.Column(db.String(20), nullable=False, default="confirmed")
    # status values: pending, confirmed, completed, cancelled

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        db.CheckConstraint(
            "end_time IS NULL OR start_time IS NULL OR end_time > start_time",
            name="ck_bookings_range",
        ),
        db.Index("ix_bookings_resource_date", "resource_id", "date"),
    )


# ---------- Hard business rule: no overlapping bookings per resource ----------
# PostgreSQL: exclusion constraint over [start_time, end_time) per resource.
PG_NO_OVERLAP_DDL = [
    "CREATE EXTENSION IF NOT EXISTS btree_gist",
    f"""
    ALTER TABLE bookings ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT}
    EXCLUDE USING gist (
        resource_id WITH =,
        tsrange(start_time, end_time, '[)') WITH &&
    ) WHERE (status <> 'cancelled' AND start_time IS NOT NULL AND end_time IS NOT NULL)
    """,
]

# SQLite: writers are serialised, so a trigger check is atomic with the write.
SQLITE_NO_OVERLAP_DDL = [
    f"""
    CREATE TRIGGER IF NOT EXISTS {NO_OVERLAP_CONSTRAINT}_insert
    BEFORE INSERT ON bookings
    WHEN NEW.status <> 'cancelled' AND NEW.start_time IS NOT NULL AND NEW.end_time IS NOT NULL
    BEGIN
        SELECT RAISE(ABORT, '{NO_OVERLAP_CONSTRAINT}')
        WHERE EXISTS (
            SELECT 1 FROM bookings
            WHERE resource_id = NEW.resource_id
              AND status <> 'cancelled'
              AND start_time IS NOT NULL AND end_time IS NOT NULL
              AND start_time < NEW.end_time
              AND end_time > NEW.start_time
        );
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS {NO_OVERLAP_CONSTRAINT}_update
    BEFORE UPDATE OF resource_id, start_time, end_time, status ON bookings
    WHEN NEW.status <> 'cancelled' AND NEW.start_time IS NOT NULL AND NEW.end_time IS NOT NULL
    BEGIN
        SELECT RAISE(ABORT, '{NO_OVERLAP_CONSTRAINT}')
        WHERE EXISTS (
            SELECT 1 FROM bookings
            WHERE id <> NEW.id
              AND resource_id = NEW.resource_id
              AND status <> 'cancelled'
              AND start_time IS NOT NULL AND end_time IS NOT NULL
              AND start_time < NEW.end_time
              AND end_time > NEW.start_time
        );
    END
    """,
]

for _stmt in PG_NO_OVERLAP_DDL:
    event.listen(Booking.__table__, "after_create", DDL(_stmt).execute_if(dialect="postgresql"))

for _stmt in SQLITE_NO_OVERLAP_DDL:
    event.listen(Booking.__table__, "after_create", DDL(_stmt).execute_if(dialect="sqlite"))
