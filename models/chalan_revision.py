from datetime import datetime
from models.append_only import append_only
from models.db import db

REVISION_NUMBER_CONSTRAINT = "uq_chalan_revision_number"

@append_only
class ChalanRevision(db.Model):
    __tablename__ = "chalan_revisions"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, nullable=False, index=True)
    # plain column: revisions stay readable after the chalan is deleted
    chalan_id = db.Column(db.Integer, nullable=False, index=True)
    chalan_number = db.Column(db.String(40), nullable=False)

    revision_number = db.Column(db.Integer, nullable=False)  # 1, 2, 3 ... per chalan
    changes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("chalan_id", "revision_number", name=REVISION_NUMBER_CONSTRAINT),
    )
