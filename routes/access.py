from flask import Blueprint, jsonify, g, request, current_app

from security.csrf import issue_csrf_token
from security.permissions import MODULES, all_permissions_for, permissions_for
from security.session import revoke_session
from services.errors import ValidationError
from utils.audit import log_event
from utils.auth_context import login_required

access_bp = Blueprint("access", __name__, url_prefix="/access")


@access_bp.get("/me")
@login_required
def me():
    """Current user; also (re)issues the CSRF cookie for the client."""
    resp = jsonify(
        id=g.user.id,
        username=g.user.username,
        full_name=g.user.full_name,
        role=g.user.role,
        company_id=g.user.company_id,
    )
    issue_csrf_token(resp)
    return resp, 200


@access_bp.get("/permissions")
@login_required
def permissions():
    module = request.args.get("module")
    if module:
        if module not in MODULES:
            raise ValidationError(f"Unknown module: {module}", field="module")
        return jsonify(module=module, **permissions_for(g.user, module).to_dict()), 200

    return jsonify({name: perms.to_dict() for name, perms in all_permissions_for(g.user).items()}), 200


@access_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "studio_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id, company_id=g.user.company_id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
