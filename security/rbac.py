from functools import wraps
from flask import g, jsonify, request

from security.permissions import permissions_for
from utils.audit import log_event


def has_role(role_name: str) -> bool:
    user = getattr(g, "user", None)
    if not user:
        return False
    return user.role == role_name


def _deny(user, reason: str):
    log_event(
        "ACCESS_DENIED",
        user_id=user.id,
        company_id=user.company_id,
        metadata={"path": request.path, "method": request.method, "reason": reason},
    )
    return jsonify(error="You do not have permission to perform this action", code="FORBIDDEN"), 403


def require_roles(*role_names: str):
    """
    Usage: @require_roles("admin")
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401
            if user.role not in role_names:
                return _deny(user, f"role {user.role} not in {','.join(role_names)}")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def require_permission(module: str, action: str):
    """
    Usage: @require_permission("chalan", "create")

    Runs before any domain logic, so a denied caller learns nothing about
    whether the target entity exists.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401
            if not permissions_for(user, module).allows(action):
                return _deny(user, f"{module}:{action}")
            return fn(*args, **kwargs)
        return wrapper
    return decorator
