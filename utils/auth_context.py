"""Per-request user loading for sessions issued by the external login service."""
from functools import wraps
from flask import g, jsonify
from security.session import get_session_from_request
from models.user import User

def load_current_user():
    g.pop("_access_grants", None)
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.session = None
        return
    user = User.query.filter_by(id=sess.user_id, is_active=True).first()
    g.session = sess if user else None
    g.user = user

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
