from datetime import date

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError

from models import db
from models.audit_log import AuditLog
from models.resource import Resource
from models.service import Service
from models.time_block import TimeBlock
from routes.booking import booking_json
from scheduling.errors import ConfigurationError, ConflictError, ValidationError
from scheduling.slots import check_working_hours, combine
from utils.audit import log_event
from utils.booking_context import booking_service

# Staff dashboard. Authentication is handled in front of the app.
admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

STAFF = "staff"


def _parse_day(value):
    try:
        return date.fromisoformat(value or "")
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD", fields={"date": "Use YYYY-MM-DD"}) from None


# ---------- STAFF: reschedule / edit booking ----------
@admin_bp.route("/bookings/<int:booking_id>", methods=["PATCH", "PUT"])
def update_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    try:
        booking = booking_service().update_booking(booking_id, data)
    except ConflictError:
        log_event("BOOKING_RESCHEDULE_CONFLICT", actor=STAFF, entity="booking", entity_id=booking_id, metadata=data)
        raise

    log_event("BOOKING_UPDATE", actor=STAFF, entity="booking", entity_id=booking.id, metadata=data)
    return jsonify(message="Booking updated", booking=booking_json(booking)), 200


@admin_bp.patch("/bookings/<int:booking_id>/status")
def change_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    status = (data.get("status") or "").strip().lower() or None
    booking = booking_service().change_status(booking_id, status)

    log_event("BOOKING_STATUS", actor=STAFF, entity="booking", entity_id=booking.id, metadata={"status": status})
    return jsonify(booking_json(booking)), 200


@admin_bp.delete("/bookings/<int:booking_id>")
def delete_booking(booking_id: int):
    svc = booking_service()
    # Serialised first: the row is gone after the commit
    snapshot = booking_json(svc.get_booking(booking_id))
    svc.delete_booking(booking_id)

    log_event("BOOKING_DELETE", actor=STAFF, entity="booking", entity_id=booking_id)
    return jsonify(message="Booking deleted successfully", booking=snapshot), 200


# ---------- STAFF: resources (chairs / barbers) ----------
@admin_bp.get("/resources")
def list_resources():
    rows = Resource.query.order_by(Resource.id.asc()).all()
    return jsonify([
        {
            "id": r.id,
            "name": r.name,
            "description": r.description,
            "open_hour": r.open_hour,
            "close_hour": r.close_hour,
            "interval_minutes": r.interval_minutes,
            "is_active": r.is_active,
        }
        for r in rows
    ]), 200


@admin_bp.post("/resources")
def create_resource():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify(error="Resource name required"), 400

    hours = {}
    for key in ("open_hour", "close_hour", "interval_minutes"):
        value = data.get(key)
        # JSON integers only
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            return jsonify(error=f"{key} must be a whole number"), 400
        hours[key] = value
    try:
        check_working_hours(booking_service().settings, **hours)
    except ConfigurationError as exc:
        return jsonify(error=f"Invalid working hours: {exc}"), 400

    r = Resource(
        name=name,
        description=(data.get("description") or "").strip() or None,
        open_hour=hours["open_hour"],
        close_hour=hours["close_hour"],
        interval_minutes=hours["interval_minutes"],
    )
    db.session.add(r)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Resource name already exists"), 409

    log_event("RESOURCE_CREATE", actor=STAFF, entity="resource", entity_id=r.id)
    return jsonify(id=r.id, name=r.name), 201


# ---------- STAFF: service catalog ----------
@admin_bp.get("/services")
def list_services():
    rows = Service.query.filter_by(is_active=True).order_by(Service.name.asc()).all()
    return jsonify([
        {"id": s.id, "name": s.name, "duration_minutes": s.duration_minutes, "price": s.price}
        for s in rows
    ]), 200


@admin_bp.post("/services")
def create_service():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    try:
        duration = int(data.get("duration_minutes") or 0)
        price = int(data.get("price") or 0)
    except (TypeError, ValueError):
        return jsonify(error="duration_minutes and price must be integers"), 400

    if not name or duration <= 0:
        return jsonify(error="name and a positive duration_minutes are required"), 400

    s = Service(name=name, duration_minutes=duration, price=price)
    db.session.add(s)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Service name already exists"), 409

    log_event("SERVICE_CREATE", actor=STAFF, entity="service", entity_id=s.id)
    return jsonify(id=s.id, name=s.name, duration_minutes=s.duration_minutes), 201


# ---------- STAFF: time blocks (breaks, days off) ----------
@admin_bp.get("/blocks")
def list_blocks():
    q = TimeBlock.query
    resource_id = request.args.get("resource_id", type=int)
    if resource_id is not None:
        q = q.filter((TimeBlock.resource_id == resource_id) | (TimeBlock.resource_id.is_(None)))
    if request.args.get("from"):
        q = q.filter(TimeBlock.date >= _parse_day(request.args["from"]))
    if request.args.get("to"):
        q = q.filter(TimeBlock.date <= _parse_day(request.args["to"]))

    rows = q.order_by(TimeBlock.start_time.asc()).limit(500).all()
    return jsonify([
        {
            "id": b.id,
            "resource_id": b.resource_id,
            "date": b.date.isoformat(),
            "start_time": b.start_time.isoformat(),
            "end_time": b.end_time.isoformat(),
            "reason": b.reason,
        }
        for b in rows
    ]), 200


@admin_bp.post("/blocks")
def create_block():
    data = request.get_json(silent=True) or {}
    day = _parse_day(data.get("date"))
    start = combine(day, data.get("start") or "")
    end = combine(day, data.get("end") or "")
    if end <= start:
        return jsonify(error="end must be after start"), 400

    resource_id = data.get("resource_id")
    if resource_id is not None and not db.session.get(Resource, resource_id):
        return jsonify(error="Resource not found"), 404

    block = TimeBlock(
        resource_id=resource_id,
        date=day,
        start_time=start,
        end_time=end,
        reason=(data.get("reason") or "").strip()[:120] or None,
    )
    db.session.add(block)
    db.session.commit()

    log_event("BLOCK_CREATE", actor=STAFF, entity="time_block", entity_id=block.id)
    return jsonify(id=block.id), 201


@admin_bp.delete("/blocks/<int:block_id>")
def delete_block(block_id: int):
    block = db.session.get(TimeBlock, block_id)
    if not block:
        return jsonify(error="Block not found"), 404

    db.session.delete(block)
    db.session.commit()

    log_event("BLOCK_DELETE", actor=STAFF, entity="time_block", entity_id=block_id)
    return jsonify(message="Block deleted"), 200


# ---------- STAFF: audit trail ----------
@admin_bp.get("/audit-logs")
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action == action)
    entity = request.args.get("entity")
    if entity:
        q = q.filter(AuditLog.entity == entity)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": r.id,
            "timestamp": r.timestamp.isoformat(),
            "actor": r.actor,
            "action": r.action,
            "entity": r.entity,
            "entity_id": r.entity_id,
            "metadata": r.metadata_json,
        }
        for r in rows
    ]), 200
