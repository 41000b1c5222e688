from flask import Blueprint, request, jsonify, current_app, g

from security.rbac import has_role, require_permission, require_roles
from services import reservations as booking
from services.conflicts import check_reservation_conflicts
from services.errors import ValidationError
from services.fields import parse_date, parse_int
from services.time_range import TimeRange, format_clock
from utils.audit import log_event

reservations_bp = Blueprint("reservations", __name__, url_prefix="/reservations")


def _clock_or_none(minutes):
    return format_clock(minutes) if minutes is not None else None


def reservation_json(r):
    return {
        "id": r.id,
        "customer_id": r.customer_id,
        "customer_name": r.customer.name if r.customer else None,
        "project_id": r.project_id,
        "project_name": r.project.name if r.project else None,
        "room_id": r.room_id,
        "room_name": r.room.name if r.room else None,
        "editor_id": r.editor_id,
        "editor_name": r.editor.name if r.editor else None,
        "booking_date": r.booking_date.isoformat(),
        "from_time": format_clock(r.from_minute),
        "to_time": format_clock(r.to_minute),
        "actual_from_time": _clock_or_none(r.actual_from_minute),
        "actual_to_time": _clock_or_none(r.actual_to_minute),
        "break_minutes": r.break_minutes,
        "total_minutes": r.total_minutes,
        "total_hours": round(r.total_minutes / 60, 2),
        "status": r.status,
        "notes": r.notes,
        "cancel_reason": r.cancel_reason,
        "cancelled_at": r.cancelled_at.isoformat() if r.cancelled_at else None,
        "created_at": r.created_at.isoformat(),
        "updated_at": r.updated_at.isoformat() if r.updated_at else None,
    }


@reservations_bp.post("")
@require_permission("booking", "create")
def create_reservation():
    data = request.get_json(silent=True) or {}
    r = booking.create_reservation(g.user.company_id, data, user_id=g.user.id)
    return jsonify(reservation_json(r)), 201


@reservations_bp.get("")
@require_permission("booking", "view")
def list_reservations():
    # optional filters: from, to (YYYY-MM-DD, inclusive), room_id, editor_id, customer_id, project_id, status
    rows = booking.list_reservations(
        g.user.company_id,
        date_from=request.args.get("from"),
        date_to=request.args.get("to"),
        room_id=request.args.get("room_id", type=int),
        editor_id=request.args.get("editor_id", type=int),
        customer_id=request.args.get("customer_id", type=int),
        project_id=request.args.get("project_id", type=int),
        status=request.args.get("status"),
        limit=current_app.config.get("RESERVATION_LIST_LIMIT", 500),
    )
    return jsonify([reservation_json(r) for r in rows]), 200


@reservations_bp.post("/conflicts")
@require_permission("booking", "view")
def check_conflicts():
    """Pre-check used by booking forms; nothing is written."""
    data = request.get_json(silent=True) or {}
    try:
        time_range = TimeRange.parse(data.get("from_time") or "", data.get("to_time") or "")
    except ValueError as exc:
        raise ValidationError(str(exc), field="to_time")

    result = check_reservation_conflicts(
        g.user.company_id,
        parse_int(data.get("room_id"), "room_id"),
        parse_int(data.get("editor_id"), "editor_id", required=False),
        parse_date(data.get("booking_date"), "booking_date"),
        time_range,
        exclude_reservation_id=parse_int(data.get("exclude_reservation_id"), "exclude_reservation_id",
                                         required=False),
    )
    return jsonify(has_conflict=result.has_conflict, **result.to_details()), 200


@reservations_bp.get("/<int:reservation_id>")
@require_permission("booking", "view")
def get_reservation(reservation_id: int):
    r = booking.get_reservation(g.user.company_id, reservation_id)
    return jsonify(reservation_json(r)), 200


@reservations_bp.patch("/<int:reservation_id>")
@require_permission("booking", "edit")
def update_reservation(reservation_id: int):
    data = request.get_json(silent=True) or {}
    r = booking.update_reservation(g.user.company_id, reservation_id, data, user_id=g.user.id)
    return jsonify(reservation_json(r)), 200


@reservations_bp.post("/<int:reservation_id>/cancel")
@require_permission("booking", "edit")
def cancel_reservation(reservation_id: int):
    data = request.get_json(silent=True) or {}
    r = booking.cancel_reservation(g.user.company_id, reservation_id, data.get("reason"), user_id=g.user.id)

    log_event("RESERVATION_CANCEL", user_id=g.user.id, company_id=g.user.company_id,
              entity="reservation", entity_id=r.id, metadata={"reason": r.cancel_reason})
    return jsonify(reservation_json(r)), 200


@reservations_bp.post("/<int:reservation_id>/reactivate")
@require_roles("admin")
def reactivate_reservation(reservation_id: int):
    r = booking.reactivate_reservation(g.user.company_id, reservation_id, user_id=g.user.id)

    log_event("RESERVATION_REACTIVATE", user_id=g.user.id, company_id=g.user.company_id,
              entity="reservation", entity_id=r.id)
    return jsonify(reservation_json(r)), 200


@reservations_bp.delete("/<int:reservation_id>")
@require_permission("booking", "delete")
def delete_reservation(reservation_id: int):
    force = request.args.get("force", "").lower() in ("1", "true", "yes")
    booking.delete_reservation(
        g.user.company_id,
        reservation_id,
        user_id=g.user.id,
        allow_confirmed=force and has_role("admin"),
    )

    log_event("RESERVATION_DELETE", user_id=g.user.id, company_id=g.user.company_id,
              entity="reservation", entity_id=reservation_id, metadata={"force": force})
    return jsonify(message="Deleted"), 200


@reservations_bp.get("/<int:reservation_id>/logs")
@require_permission("booking", "view")
def reservation_logs(reservation_id: int):
    rows = booking.reservation_logs(g.user.company_id, reservation_id)
    return jsonify([
        {
            "id": e.id,
            "reservation_id": e.reservation_id,
            "action": e.action,
            "changes": e.changes,
            "user_id": e.user_id,
            "created_at": e.created_at.isoformat(),
        }
        for e in rows
    ]), 200
