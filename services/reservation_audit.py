"""Append-only change log for reservations."""
from models import db
from models.reservation_log import ReservationLog
from services.time_range import format_clock

# Order and labels used when describing an edit.
_FIELD_LABELS = (
    ("customer", "Customer"),
    ("project", "Project"),
    ("room", "Room"),
    ("editor", "Editor"),
    ("booking_date", "Date"),
    ("time", "Time"),
    ("actual_time", "Actual time"),
    ("break_minutes", "Break (min)"),
    ("status", "Status"),
    ("notes", "Notes"),
)


def snapshot(reservation):
    """Human-readable view of the fields an audit entry describes."""
    actual = None
    if reservation.actual_from_minute is not None and reservation.actual_to_minute is not None:
        actual = f"{format_clock(reservation.actual_from_minute)}-{format_clock(reservation.actual_to_minute)}"
    return {
        "customer": reservation.customer.name if reservation.customer else reservation.customer_id,
        "project": reservation.project.name if reservation.project else reservation.project_id,
        "room": reservation.room.name if reservation.room else reservation.room_id,
        "editor": reservation.editor.name if reservation.editor else reservation.editor_id,
        "booking_date": reservation.booking_date.isoformat() if reservation.booking_date else None,
        "time": f"{format_clock(reservation.from_minute)}-{format_clock(reservation.to_minute)}",
        "actual_time": actual,
        "break_minutes": reservation.break_minutes,
        "status": reservation.status,
        "notes": reservation.notes,
    }


def describe_changes(before, after):
    parts = []
    for key, label in _FIELD_LABELS:
        old, new = before.get(key), after.get(key)
        if old != new:
            parts.append(f"{label}: {_fmt(old)} -> {_fmt(new)}")
    return "; ".join(parts)


def _fmt(value):
    if value is None or value == "":
        return "none"
    return str(value)


def record(reservation, action: str, changes: str = None, user_id=None) -> ReservationLog:
    """Stage one audit entry in the caller's transaction; the caller commits."""
    entry = ReservationLog(
        company_id=reservation.company_id,
        reservation_id=reservation.id,
        action=action,
        changes=changes,
        user_id=user_id,
    )
    db.session.add(entry)
    return entry


def entries_for(company_id: int, reservation_id: int):
    return (
        ReservationLog.query
        .filter_by(company_id=company_id, reservation_id=reservation_id)
        .order_by(ReservationLog.created_at.asc(), ReservationLog.id.asc())
        .all()
    )
