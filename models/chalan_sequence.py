from models.db import db

class ChalanSequence(db.Model):
    __tablename__ = "chalan_sequences"

    id = db.Column(db.Integer, primary_key=True)
    # "company:<id>" or "global", see CHALAN_NUMBER_SCOPE
    scope_key = db.Column(db.String(40), unique=True, nullable=False)
    last_value = db.Column(db.Integer, nullable=False, default=0)
