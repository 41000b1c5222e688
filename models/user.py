from datetime import datetime
from models.db import db

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(120), nullable=True)

    # admin, gst, non_gst, account, custom
    role = db.Column(db.String(20), nullable=False, default="non_gst")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    module_access = db.relationship(
        "UserModuleAccess", back_populates="user", cascade="all, delete-orphan"
    )

class UserModuleAccess(db.Model):
    """One permission grant of a custom-role user for a (module, section) pair."""
    __tablename__ = "user_module_access"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    module = db.Column(db.String(60), nullable=False)   # e.g. Operations
    section = db.Column(db.String(60), nullable=False)  # e.g. Chalan Entry

    can_view = db.Column(db.Boolean, default=False, nullable=False)
    can_create = db.Column(db.Boolean, default=False, nullable=False)
    can_edit = db.Column(db.Boolean, default=False, nullable=False)
    can_delete = db.Column(db.Boolean, default=False, nullable=False)

    user = db.relationship("User", back_populates="module_access")
