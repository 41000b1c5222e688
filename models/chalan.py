from datetime import datetime
from models.db import db

ACTIVE_CHALAN_INDEX = "uq_chalans_active_reservation"

class Chalan(db.Model):
    __tablename__ = "chalans"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    chalan_number = db.Column(db.String(40), nullable=False)

    reservation_id = db.Column(db.Integer, db.ForeignKey("reservations.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id"), nullable=True)
    editor_id = db.Column(db.Integer, db.ForeignKey("editors.id"), nullable=True)

    chalan_date = db.Column(db.Date, nullable=False)

    # snapshot of the reservation's schedule when the document was raised
    from_minute = db.Column(db.Integer, nullable=True)
    to_minute = db.Column(db.Integer, nullable=True)
    actual_from_minute = db.Column(db.Integer, nullable=True)
    actual_to_minute = db.Column(db.Integer, nullable=True)
    break_minutes = db.Column(db.Integer, nullable=False, default=0)
    total_minutes = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    is_cancelled = db.Column(db.Boolean, default=False, nullable=False)
    cancel_reason = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    revision_count = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = db.relationship(
        "ChalanItem",
        back_populates="chalan",
        cascade="all, delete-orphan",
        order_by="ChalanItem.position",
    )
    reservation = db.relationship("Reservation")
    customer = db.relationship("Customer")
    project = db.relationship("Project")

    __table_args__ = (
        db.UniqueConstraint("company_id", "chalan_number", name="uq_chalans_company_number"),
        # at most one active document per reservation
        db.Index(
            ACTIVE_CHALAN_INDEX,
            "reservation_id",
            unique=True,
            sqlite_where=db.text("is_cancelled = 0"),
            postgresql_where=db.text("is_cancelled = false"),
        ),
        # ids are never reused, so revision history cannot attach to a new chalan
        {"sqlite_autoincrement": True},
    )

class ChalanItem(db.Model):
    __tablename__ = "chalan_items"

    id = db.Column(db.Integer, primary_key=True)
    chalan_id = db.Column(db.Integer, db.ForeignKey("chalans.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    rate = db.Column(db.Numeric(12, 2), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)  # quantity * rate

    chalan = db.relationship("Chalan", back_populates="items")
