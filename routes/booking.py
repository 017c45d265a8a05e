from datetime import date

from flask import Blueprint, request, jsonify

from scheduling.errors import ConflictError
from utils.audit import log_event
from utils.booking_context import booking_service

booking_bp = Blueprint("booking", __name__)


def booking_json(b):
    return {
        "id": b.id,
        "resource_id": b.resource_id,
        "service_id": b.service_id,
        "service": b.service_name,
        "name": b.client_name,
        "phone": b.client_phone,
        "email": b.client_email,
        "notes": b.notes,
        "date": b.date.isoformat(),
        "time": b.time,
        "duration": b.duration_minutes,
        "start_time": b.start_time.isoformat() if b.start_time else None,
        "end_time": b.end_time.isoformat() if b.end_time else None,
        "status": b.status,
        "created_at": b.created_at.isoformat() if b.created_at else None,
        "updated_at": b.updated_at.isoformat() if b.updated_at else None,
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
    }


# ---------- CLIENTS: book a slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/bookings")
def create_booking():
    data = request.get_json(silent=True)
    payload = data if isinstance(data, dict) else {}

    try:
        booking = booking_service().create_booking(data)
    except ConflictError as exc:
        # Raised by the pre-check or by the bookings_no_overlap constraint
        log_event(
            "BOOKING_CONFLICT",
            actor=payload.get("email") or payload.get("name"),
            entity="resource",
            entity_id=exc.details.get("resource_id"),
            metadata={"date": exc.details.get("date"), "time": exc.details.get("time")},
        )
        raise

    log_event(
        "BOOKING_CREATE",
        actor=booking.client_email or booking.client_name,
        entity="booking",
        entity_id=booking.id,
        metadata={"resource_id": booking.resource_id, "date": booking.date, "time": booking.time},
    )
    return jsonify(booking_json(booking)), 201


@booking_bp.get("/bookings")
def list_bookings():
    # optional filters: date (YYYY-MM-DD), resource_id, status
    date_str = request.args.get("date")
    day = None
    if date_str:
        try:
            day = date.fromisoformat(date_str)
        except ValueError:
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    rows = booking_service().list_bookings(
        day=day,
        resource_id=request.args.get("resource_id", type=int),
        status=request.args.get("status"),
    )
    return jsonify([booking_json(b) for b in rows]), 200


@booking_bp.get("/bookings/<int:booking_id>")
def get_booking(booking_id: int):
    booking = booking_service().get_booking(booking_id)
    return jsonify(booking_json(booking)), 200
