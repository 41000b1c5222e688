"""
Reservation lifecycle.

Statuses planning, tentative and confirmed are informational priority levels:
any of them may move directly to any other. cancelled is reachable from all
three and is left only through reactivate_reservation, an admin-only call.
Every mutation appends a ReservationLog entry in the same transaction.
"""
import logging
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.chalan import Chalan
from models.customer import Customer
from models.editor import Editor
from models.project import Project
from models.reservation import Reservation, RESERVATION_STATUSES, ROOM_OVERLAP_CONSTRAINT, EDITOR_OVERLAP_CONSTRAINT
from models.room import Room
from services import billing
from services import reservation_audit as audit
from services.conflicts import ConflictResult, check_reservation_conflicts
from services.errors import ConflictError, NotFoundError, StateError, ValidationError
from services.fields import parse_date, parse_int, parse_text
from services.integrity import FOREIGN_KEY, violated_constraint
from services.resources import ResourceKind
from services.time_range import TimeRange, format_clock, parse_clock

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("planning", "tentative", "confirmed")
INITIAL_STATUS = "planning"

# Changing any of these re-runs conflict detection.
SCHEDULE_FIELDS = frozenset({"room_id", "editor_id", "booking_date", "from_minute", "to_minute"})


def get_reservation(company_id: int, reservation_id: int) -> Reservation:
    reservation = Reservation.query.filter_by(id=reservation_id, company_id=company_id).first()
    if not reservation:
        raise NotFoundError("Booking not found")
    return reservation


def _lookup(model, company_id: int, value, field: str, label: str):
    record_id = parse_int(value, field)
    record = model.query.filter_by(id=record_id, company_id=company_id).first()
    if not record or not record.is_active:
        raise ValidationError(f"{label} not found", field=field)
    return record


def _clock(value, field: str, end: bool = False):
    try:
        return parse_clock(value, allow_end_of_day=end)
    except ValueError as exc:
        raise ValidationError(str(exc), field=field)


def _range(start: int, end: int, end_field: str) -> TimeRange:
    if end < start:
        raise ValidationError(
            "A booking cannot span two dates; end time is before start time",
            field=end_field,
            code="CROSSES_MIDNIGHT",
        )
    if end == start:
        raise ValidationError("End time must be after start time", field=end_field)
    return TimeRange(start, end)


def _build_values(company_id: int, fields: dict, current: Optional[Reservation] = None) -> dict:
    """Merge *fields* over *current* and validate the result.

    Returns the complete set of column values for the reservation; nothing
    is written to *current*.
    """
    if not isinstance(fields, dict):
        raise ValidationError("Request body must be an object")

    def provided(key):
        return key in fields if current is not None else fields.get(key) not in (None, "")

    values = {}
    if current is None or "customer_id" in fields:
        values["customer_id"] = _lookup(Customer, company_id, fields.get("customer_id"), "customer_id", "Customer").id
    else:
        values["customer_id"] = current.customer_id

    if current is None or "project_id" in fields or "customer_id" in fields:
        project_value = fields.get("project_id") if "project_id" in fields or current is None else current.project_id
        project = _lookup(Project, company_id, project_value, "project_id", "Project")
        if project.customer_id != values["customer_id"]:
            raise ValidationError("Project does not belong to the selected customer", field="project_id")
        values["project_id"] = project.id
    else:
        values["project_id"] = current.project_id

    if current is None or "room_id" in fields:
        values["room_id"] = _lookup(Room, company_id, fields.get("room_id"), "room_id", "Room").id
    else:
        values["room_id"] = current.room_id

    if "editor_id" in fields and fields.get("editor_id") not in (None, ""):
        values["editor_id"] = _lookup(Editor, company_id, fields.get("editor_id"), "editor_id", "Editor").id
    elif "editor_id" in fields or current is None:
        values["editor_id"] = None
    else:
        values["editor_id"] = current.editor_id

    if current is None or "booking_date" in fields:
        values["booking_date"] = parse_date(fields.get("booking_date"), "booking_date")
    else:
        values["booking_date"] = current.booking_date

    if current is None:
        for key in ("from_time", "to_time"):
            if not provided(key):
                raise ValidationError(f"{key} is required", field=key)
    start = _clock(fields["from_time"], "from_time") if "from_time" in fields else current.from_minute
    end = _clock(fields["to_time"], "to_time", end=True) if "to_time" in fields else current.to_minute
    scheduled = _range(start, end, "to_time")
    values["from_minute"], values["to_minute"] = scheduled.start, scheduled.end

    # actual (realized) times: both or neither
    if "actual_from_time" in fields or "actual_to_time" in fields:
        actual_from = fields.get("actual_from_time") or None
        actual_to = fields.get("actual_to_time") or None
        if bool(actual_from) != bool(actual_to):
            missing = "actual_to_time" if actual_from else "actual_from_time"
            raise ValidationError("Both actual times are required together", field=missing)
        if actual_from:
            actual = _range(_clock(actual_from, "actual_from_time"),
                            _clock(actual_to, "actual_to_time", end=True), "actual_to_time")
            values["actual_from_minute"], values["actual_to_minute"] = actual.start, actual.end
        else:
            values["actual_from_minute"] = values["actual_to_minute"] = None
    elif current is not None:
        values["actual_from_minute"] = current.actual_from_minute
        values["actual_to_minute"] = current.actual_to_minute
    else:
        values["actual_from_minute"] = values["actual_to_minute"] = None

    if "break_minutes" in fields:
        values["break_minutes"] = parse_int(fields.get("break_minutes"), "break_minutes", required=False) or 0
    else:
        values["break_minutes"] = current.break_minutes if current is not None else 0
    if values["break_minutes"] < 0:
        raise ValidationError("break_minutes cannot be negative", field="break_minutes")

    if values["actual_from_minute"] is not None:
        worked = values["actual_to_minute"] - values["actual_from_minute"]
    else:
        worked = scheduled.duration
    if values["break_minutes"] > worked:
        raise ValidationError("Break is longer than the booked time", field="break_minutes")
    values["total_minutes"] = worked - values["break_minutes"]

    if "status" in fields or current is None:
        status = (fields.get("status") or INITIAL_STATUS) if current is None else fields.get("status")
        if status == "cancelled":
            raise StateError("Use the cancel operation to cancel a booking", code="USE_CANCEL")
        if status not in ACTIVE_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(ACTIVE_STATUSES)}", field="status")
        values["status"] = status
    else:
        values["status"] = current.status

    if "notes" in fields or current is None:
        values["notes"] = parse_text(fields.get("notes"), "notes") or None
    else:
        values["notes"] = current.notes

    return values


def _conflict_error(result: ConflictResult) -> ConflictError:
    first = result.conflicts[0]
    message = (
        f"{first.kind.value.capitalize()} is already booked "
        f"{format_clock(first.time_range.start)}-{format_clock(first.time_range.end)}"
        f" for {first.customer_name or 'another customer'} (booking #{first.id})"
    )
    return ConflictError(message, code="RESERVATION_CONFLICT", details=result.to_details())


def _schedule_conflicts(company_id: int, values: dict, exclude_id=None) -> ConflictResult:
    return check_reservation_conflicts(
        company_id,
        values["room_id"],
        values["editor_id"],
        values["booking_date"],
        TimeRange(values["from_minute"], values["to_minute"]),
        exclude_reservation_id=exclude_id,
    )


def _ensure_no_conflicts(company_id: int, values: dict, exclude_id=None):
    result = _schedule_conflicts(company_id, values, exclude_id)
    if result.has_conflict:
        logger.info("Booking rejected: overlaps reservations %s", [c.id for c in result.conflicts])
        raise _conflict_error(result)


def _write_error(exc: IntegrityError, company_id: int, values: dict, exclude_id=None):
    """Map a constraint violation to the error the pre-check would have raised."""
    name = violated_constraint(exc)
    if name in (ROOM_OVERLAP_CONSTRAINT, EDITOR_OVERLAP_CONSTRAINT):
        logger.warning("Overlapping booking caught by constraint %s", name)
        result = _schedule_conflicts(company_id, values, exclude_id)
        if result.has_conflict:
            return _conflict_error(result)
        kind = next(k for k in ResourceKind if k.constraint_name == name)
        return ConflictError(f"{kind.value.capitalize()} was booked for this time by someone else",
                             code="RESERVATION_CONFLICT", details={"conflicts": []})
    if name == FOREIGN_KEY:
        return ValidationError("Booking references a missing record")
    return None


def _describe_new(reservation: Reservation) -> str:
    snap = audit.snapshot(reservation)
    text = f"Booked {snap['room']} for {snap['customer']} / {snap['project']} on {snap['booking_date']} {snap['time']}"
    if snap["editor"]:
        text += f" with {snap['editor']}"
    return f"{text} ({reservation.status})"


def create_reservation(company_id: int, fields: dict, user_id=None) -> Reservation:
    values = _build_values(company_id, fields)
    _ensure_no_conflicts(company_id, values)

    reservation = Reservation(company_id=company_id, created_by=user_id, **values)
    db.session.add(reservation)
    try:
        db.session.flush()
        audit.record(reservation, "created", _describe_new(reservation), user_id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        error = _write_error(exc, company_id, values)
        if error is None:
            raise
        raise error from exc

    logger.info("Reservation %s created (%s)", reservation.id, reservation.status)
    return reservation


def update_reservation(company_id: int, reservation_id: int, fields: dict, user_id=None) -> Reservation:
    reservation = get_reservation(company_id, reservation_id)
    if reservation.status == "cancelled":
        raise StateError("Cancelled bookings are read-only", code="RESERVATION_CANCELLED",
                         details={"reservation_id": reservation.id})

    values = _build_values(company_id, fields, reservation)
    changed = {key: value for key, value in values.items() if getattr(reservation, key) != value}
    if not changed:
        return reservation
    if SCHEDULE_FIELDS & set(changed):
        _ensure_no_conflicts(company_id, values, exclude_id=reservation.id)

    before = audit.snapshot(reservation)
    for key, value in changed.items():
        setattr(reservation, key, value)
    try:
        db.session.flush()
        db.session.expire(reservation, ["customer", "project", "room", "editor"])
        action = "status_changed" if set(changed) == {"status"} else "updated"
        audit.record(reservation, action, audit.describe_changes(before, audit.snapshot(reservation)), user_id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        error = _write_error(exc, company_id, values, exclude_id=reservation_id)
        if error is None:
            raise
        raise error from exc

    logger.info("Reservation %s updated: %s", reservation.id, ", ".join(sorted(changed)))
    return reservation


def cancel_reservation(company_id: int, reservation_id: int, reason, user_id=None) -> Reservation:
    reason = parse_text(reason, "reason", required=True, max_length=255)
    reservation = get_reservation(company_id, reservation_id)
    if reservation.status == "cancelled":
        raise StateError("Booking is already cancelled", code="RESERVATION_ALREADY_CANCELLED",
                         details={"reservation_id": reservation.id})

    chalan = billing.active_chalan_for(company_id, reservation.id)
    cascade = current_app.config.get("BOOKING_CANCEL_CASCADES_CHALAN", False)

    reservation.status = "cancelled"
    reservation.cancel_reason = reason
    reservation.cancelled_at = datetime.utcnow()

    changes = f"Cancelled: {reason}"
    if chalan is not None and not cascade:
        changes += f" (chalan {chalan.chalan_number} remains active)"
    audit.record(reservation, "cancelled", changes, user_id)

    if chalan is not None and cascade:
        billing.mark_cancelled(chalan, f"Booking #{reservation.id} cancelled: {reason}")
        audit.record(reservation, "chalan_cancelled",
                     f"Chalan {chalan.chalan_number} cancelled with the booking", user_id)

    db.session.commit()
    logger.info("Reservation %s cancelled", reservation.id)
    return reservation


def reactivate_reservation(company_id: int, reservation_id: int, user_id=None) -> Reservation:
    """Bring a cancelled booking back to planning if its slot is still free."""
    reservation = get_reservation(company_id, reservation_id)
    if reservation.status != "cancelled":
        raise StateError("Only cancelled bookings can be reactivated", code="RESERVATION_NOT_CANCELLED",
                         details={"reservation_id": reservation.id, "status": reservation.status})

    values = {
        "room_id": reservation.room_id,
        "editor_id": reservation.editor_id,
        "booking_date": reservation.booking_date,
        "from_minute": reservation.from_minute,
        "to_minute": reservation.to_minute,
    }
    _ensure_no_conflicts(company_id, values, exclude_id=reservation.id)

    previous_reason = reservation.cancel_reason
    reservation.status = INITIAL_STATUS
    reservation.cancel_reason = None
    reservation.cancelled_at = None
    audit.record(reservation, "reactivated", f"Reactivated (was cancelled: {previous_reason})", user_id)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        error = _write_error(exc, company_id, values, exclude_id=reservation_id)
        if error is None:
            raise
        raise error from exc

    logger.info("Reservation %s reactivated", reservation.id)
    return reservation


def delete_reservation(company_id: int, reservation_id: int, user_id=None, allow_confirmed: bool = False):
    """Hard delete. Refused once a chalan references the booking; confirmed
    bookings additionally need *allow_confirmed*."""
    reservation = get_reservation(company_id, reservation_id)

    chalan = Chalan.query.filter_by(company_id=company_id, reservation_id=reservation.id).first()
    if chalan is not None:
        raise ConflictError(
            "Booking has a chalan and cannot be deleted; cancel it instead",
            code="RESERVATION_HAS_CHALAN",
            details={"reservation_id": reservation.id, "chalan_id": chalan.id,
                     "chalan_number": chalan.chalan_number},
        )
    if reservation.status == "confirmed" and not allow_confirmed:
        raise StateError("Confirmed bookings can only be deleted by an administrator",
                         code="RESERVATION_CONFIRMED", details={"reservation_id": reservation.id})

    audit.record(reservation, "deleted", f"Deleted: {_describe_new(reservation)}", user_id)
    db.session.delete(reservation)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if violated_constraint(exc) == FOREIGN_KEY:
            raise ConflictError("Booking has a chalan and cannot be deleted; cancel it instead",
                                code="RESERVATION_HAS_CHALAN",
                                details={"reservation_id": reservation_id}) from exc
        raise

    logger.info("Reservation %s deleted", reservation_id)


def list_reservations(company_id: int, date_from=None, date_to=None, room_id=None, editor_id=None,
                      customer_id=None, project_id=None, status=None, limit: int = None):
    """Range/filter query. Cancelled bookings are included unless *status* says otherwise."""
    date_from = parse_date(date_from, "from", required=False)
    date_to = parse_date(date_to, "to", required=False)
    if date_from and date_to and date_to < date_from:
        raise ValidationError("'to' must not be before 'from'", field="to")
    if status and status not in RESERVATION_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(RESERVATION_STATUSES)}", field="status")

    q = Reservation.query.filter_by(company_id=company_id)
    if date_from:
        q = q.filter(Reservation.booking_date >= date_from)
    if date_to:
        q = q.filter(Reservation.booking_date <= date_to)
    if room_id is not None:
        q = q.filter(Reservation.room_id == room_id)
    if editor_id is not None:
        q = q.filter(Reservation.editor_id == editor_id)
    if customer_id is not None:
        q = q.filter(Reservation.customer_id == customer_id)
    if project_id is not None:
        q = q.filter(Reservation.project_id == project_id)
    if status:
        q = q.filter(Reservation.status == status)

    q = q.order_by(Reservation.booking_date.asc(), Reservation.from_minute.asc(), Reservation.id.asc())
    if limit:
        q = q.limit(limit)
    return q.all()


def reservation_logs(company_id: int, reservation_id: int):
    entries = audit.entries_for(company_id, reservation_id)
    if not entries:
        # still 404 for ids that never existed in this company
        get_reservation(company_id, reservation_id)
    return entries
