from datetime import datetime
from sqlalchemy import DDL, event
from models.db import db

RESERVATION_STATUSES = ("planning", "tentative", "confirmed", "cancelled")

ROOM_OVERLAP_CONSTRAINT = "reservation_room_overlap"
EDITOR_OVERLAP_CONSTRAINT = "reservation_editor_overlap"

class Reservation(db.Model):
    __tablename__ = "reservations"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id"), nullable=False, index=True)
    editor_id = db.Column(db.Integer, db.ForeignKey("editors.id"), nullable=True, index=True)

    booking_date = db.Column(db.Date, nullable=False, index=True)
    # scheduled [from, to) in minutes since local midnight
    from_minute = db.Column(db.Integer, nullable=False)
    to_minute = db.Column(db.Integer, nullable=False)

    actual_from_minute = db.Column(db.Integer, nullable=True)
    actual_to_minute = db.Column(db.Integer, nullable=True)
    break_minutes = db.Column(db.Integer, nullable=False, default=0)
    total_minutes = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default="planning")
    # status values: planning, tentative, confirmed, cancelled
    notes = db.Column(db.Text, nullable=True)

    cancel_reason = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    customer = db.relationship("Customer")
    project = db.relationship("Project")
    room = db.relationship("Room")
    editor = db.relationship("Editor")

    __table_args__ = (
        db.Index("ix_reservations_room_day", "company_id", "room_id", "booking_date"),
        db.Index("ix_reservations_editor_day", "company_id", "editor_id", "booking_date"),
        db.CheckConstraint("from_minute >= 0 AND to_minute <= 1440 AND from_minute < to_minute",
                           name="ck_reservations_time_range"),
        # ids are never reused, so an old audit trail cannot attach to a new booking
        {"sqlite_autoincrement": True},
    )


# The conflict detector is a pre-check; these constraints are the authority
# when two writers race past it.

_SQLITE_OVERLAP_CHECK = """
    SELECT RAISE(ABORT, '{name}')
    WHERE {guard} EXISTS (
        SELECT 1 FROM reservations r
        WHERE r.company_id = NEW.company_id
          AND r.{column} = NEW.{column}
          AND r.booking_date = NEW.booking_date
          AND r.status <> 'cancelled'
          AND r.from_minute < NEW.to_minute
          AND NEW.from_minute < r.to_minute
          {exclude_self}
    );
"""


def _sqlite_trigger(event_name, exclude_self):
    room = _SQLITE_OVERLAP_CHECK.format(
        name=ROOM_OVERLAP_CONSTRAINT, guard="", column="room_id", exclude_self=exclude_self,
    )
    editor = _SQLITE_OVERLAP_CHECK.format(
        name=EDITOR_OVERLAP_CONSTRAINT, guard="NEW.editor_id IS NOT NULL AND",
        column="editor_id", exclude_self=exclude_self,
    )
    return (
        f"CREATE TRIGGER trg_reservations_no_overlap_{event_name.lower()} "
        f"BEFORE {event_name} ON reservations "
        "WHEN NEW.status <> 'cancelled' "
        f"BEGIN {room} {editor} END"
    )


SQLITE_OVERLAP_TRIGGERS = (
    _sqlite_trigger("INSERT", ""),
    _sqlite_trigger("UPDATE", "AND r.id <> NEW.id"),
)

POSTGRES_OVERLAP_CONSTRAINTS = (
    "CREATE EXTENSION IF NOT EXISTS btree_gist",
    f"""
    ALTER TABLE reservations ADD CONSTRAINT {ROOM_OVERLAP_CONSTRAINT}
    EXCLUDE USING gist (
        company_id WITH =,
        room_id WITH =,
        booking_date WITH =,
        int4range(from_minute, to_minute, '[)') WITH &&
    ) WHERE (status <> 'cancelled')
    """,
    f"""
    ALTER TABLE reservations ADD CONSTRAINT {EDITOR_OVERLAP_CONSTRAINT}
    EXCLUDE USING gist (
        company_id WITH =,
        editor_id WITH =,
        booking_date WITH =,
        int4range(from_minute, to_minute, '[)') WITH &&
    ) WHERE (status <> 'cancelled' AND editor_id IS NOT NULL)
    """,
)

for _statement in SQLITE_OVERLAP_TRIGGERS:
    event.listen(Reservation.__table__, "after_create", DDL(_statement).execute_if(dialect="sqlite"))
for _statement in POSTGRES_OVERLAP_CONSTRAINTS:
    event.listen(Reservation.__table__, "after_create", DDL(_statement).execute_if(dialect="postgresql"))
