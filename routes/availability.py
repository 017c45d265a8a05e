from datetime import date

from flask import Blueprint, request, jsonify

from scheduling.availability import check_slot, get_availability, month_overview
from utils.booking_context import booking_service

availability_bp = Blueprint("availability", __name__)


# Two public paths, one view
@availability_bp.get("/availability")
@availability_bp.get("/bookings/availability")
def availability():
    date_str = request.args.get("date")
    if not date_str:
        return jsonify(error="Missing date parameter"), 400
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    svc = booking_service()
    result = get_availability(
        svc.store,
        svc.settings,
        day,
        resource_id=request.args.get("resource_id", type=int),
        service_id=request.args.get("service_id", type=int),
        service_name=(request.args.get("service") or "").strip() or None,
    )
    return jsonify(result.to_dict()), 200


@availability_bp.get("/availability/month")
def availability_month():
    month_str = request.args.get("month")  # YYYY-MM
    if not month_str:
        return jsonify(error="Missing month parameter"), 400
    try:
        year, month = (int(p) for p in month_str.split("-"))
        date(year, month, 1)
    except ValueError:
        return jsonify(error="Invalid month. Use YYYY-MM"), 400

    svc = booking_service()
    days = month_overview(
        svc.store,
        svc.settings,
        year,
        month,
        resource_id=request.args.get("resource_id", type=int),
        service_id=request.args.get("service_id", type=int),
        service_name=(request.args.get("service") or "").strip() or None,
    )
    return jsonify(month=month_str, days=days), 200


@availability_bp.get("/availability/check")
def availability_check():
    date_str = request.args.get("date")
    time_str = (request.args.get("time") or "").strip()
    if not date_str or not time_str:
        return jsonify(error="Missing date or time parameter"), 400
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    svc = booking_service()
    result = check_slot(
        svc.store,
        svc.settings,
        day,
        time_str,
        resource_id=request.args.get("resource_id", type=int),
        service_id=request.args.get("service_id", type=int),
        service_name=(request.args.get("service") or "").strip() or None,
    )
    return jsonify(result.to_dict()), 200
