from datetime import datetime
from models.db import db

class AuditLog(db.Model):
    """Security event log: who did what from where. Domain history lives in
    reservation_logs and chalan_revisions."""
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(80), nullable=False)  # e.g. CHALAN_CANCEL, ACCESS_DENIED
    entity = db.Column(db.String(80), nullable=True)   # e.g. chalan, reservation
    entity_id = db.Column(db.String(80), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
