from datetime import datetime
from models.append_only import append_only
from models.db import db

@append_only
class ReservationLog(db.Model):
    __tablename__ = "reservation_logs"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, nullable=False, index=True)
    # plain column: the history outlives a deleted reservation
    reservation_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(40), nullable=False)  # created, updated, cancelled, ...
    changes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
