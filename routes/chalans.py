from flask import Blueprint, request, jsonify, g

from security.rbac import has_role, require_permission
from services.errors import AuthorizationError, ValidationError
from services import billing
from services.time_range import format_clock
from utils.audit import log_event

chalans_bp = Blueprint("chalans", __name__, url_prefix="/chalans")


def _money(value):
    return str(value) if value is not None else None


def chalan_json(c, with_items=True):
    out = {
        "id": c.id,
        "chalan_number": c.chalan_number,
        "reservation_id": c.reservation_id,
        "customer_id": c.customer_id,
        "customer_name": c.customer.name if c.customer else None,
        "project_id": c.project_id,
        "project_name": c.project.name if c.project else None,
        "room_id": c.room_id,
        "editor_id": c.editor_id,
        "chalan_date": c.chalan_date.isoformat(),
        "from_time": format_clock(c.from_minute) if c.from_minute is not None else None,
        "to_time": format_clock(c.to_minute) if c.to_minute is not None else None,
        "break_minutes": c.break_minutes,
        "total_minutes": c.total_minutes,
        "notes": c.notes,
        "total_amount": _money(c.total_amount),
        "is_cancelled": c.is_cancelled,
        "cancel_reason": c.cancel_reason,
        "cancelled_at": c.cancelled_at.isoformat() if c.cancelled_at else None,
        "revision_count": c.revision_count,
        "created_at": c.created_at.isoformat(),
    }
    if with_items:
        out["items"] = [
            {
                "description": i.description,
                "quantity": _money(i.quantity),
                "rate": _money(i.rate),
                "amount": _money(i.amount),
            }
            for i in c.items
        ]
    return out


def revision_json(rev):
    return {
        "id": rev.id,
        "chalan_id": rev.chalan_id,
        "chalan_number": rev.chalan_number,
        "revision_number": rev.revision_number,
        "changes": rev.changes,
        "user_id": rev.user_id,
        "created_at": rev.created_at.isoformat(),
    }


@chalans_bp.post("")
@require_permission("chalan", "create")
def create_chalan():
    data = request.get_json(silent=True) or {}
    chalan = billing.create_chalan(
        g.user.company_id,
        data.get("reservation_id"),
        data.get("items"),
        notes=data.get("notes"),
        chalan_date=data.get("chalan_date"),
        user_id=g.user.id,
    )

    log_event("CHALAN_CREATE", user_id=g.user.id, company_id=g.user.company_id,
              entity="chalan", entity_id=chalan.id, metadata={"chalan_number": chalan.chalan_number})
    return jsonify(chalan_json(chalan)), 201


@chalans_bp.get("")
@require_permission("chalan", "view")
def list_chalans():
    include_cancelled = request.args.get("include_cancelled", "true").lower() not in ("0", "false", "no")
    # project_ids=1,2,3
    raw_ids = [p.strip() for p in (request.args.get("project_ids") or "").split(",") if p.strip()]
    if not all(p.isdigit() for p in raw_ids):
        raise ValidationError("project_ids must be a comma-separated list of ids", field="project_ids")
    project_ids = [int(p) for p in raw_ids]
    rows = billing.list_chalans(
        g.user.company_id,
        customer_id=request.args.get("customer_id", type=int),
        project_ids=project_ids or None,
        reservation_id=request.args.get("reservation_id", type=int),
        include_cancelled=include_cancelled,
    )
    return jsonify([chalan_json(c, with_items=False) for c in rows]), 200


@chalans_bp.get("/<int:chalan_id>")
@require_permission("chalan", "view")
def get_chalan(chalan_id: int):
    return jsonify(chalan_json(billing.get_chalan(g.user.company_id, chalan_id))), 200


@chalans_bp.patch("/<int:chalan_id>")
@require_permission("chalan", "edit")
def revise_chalan(chalan_id: int):
    data = request.get_json(silent=True) or {}
    revision = billing.revise_chalan(
        g.user.company_id,
        chalan_id,
        data.get("items"),
        notes=data.get("notes"),
        changes=data.get("changes"),
        user_id=g.user.id,
    )
    chalan = billing.get_chalan(g.user.company_id, chalan_id)

    log_event("CHALAN_REVISE", user_id=g.user.id, company_id=g.user.company_id,
              entity="chalan", entity_id=chalan_id, metadata={"revision_number": revision.revision_number})
    return jsonify(chalan=chalan_json(chalan), revision=revision_json(revision)), 200


@chalans_bp.get("/<int:chalan_id>/revisions")
@require_permission("chalan", "view")
def list_revisions(chalan_id: int):
    rows = billing.list_revisions(g.user.company_id, chalan_id)
    return jsonify([revision_json(r) for r in rows]), 200


@chalans_bp.post("/<int:chalan_id>/cancel")
@require_permission("chalan", "edit")
def cancel_chalan(chalan_id: int):
    data = request.get_json(silent=True) or {}
    chalan = billing.cancel_chalan(g.user.company_id, chalan_id, data.get("reason"), user_id=g.user.id)

    log_event("CHALAN_CANCEL", user_id=g.user.id, company_id=g.user.company_id,
              entity="chalan", entity_id=chalan.id, metadata={"reason": chalan.cancel_reason})
    return jsonify(chalan_json(chalan)), 200


@chalans_bp.patch("/<int:chalan_id>/status")
@require_permission("chalan", "edit")
def set_status(chalan_id: int):
    data = request.get_json(silent=True) or {}
    is_cancelled = data.get("is_cancelled")
    # reactivation is an administrator action
    if is_cancelled is False and not has_role("admin"):
        raise AuthorizationError("Only administrators can reactivate a chalan")

    chalan = billing.set_chalan_status(
        g.user.company_id, chalan_id, is_cancelled, reason=data.get("reason"), user_id=g.user.id
    )

    action = "CHALAN_CANCEL" if chalan.is_cancelled else "CHALAN_REACTIVATE"
    log_event(action, user_id=g.user.id, company_id=g.user.company_id, entity="chalan", entity_id=chalan.id)
    return jsonify(chalan_json(chalan)), 200


@chalans_bp.delete("/<int:chalan_id>")
@require_permission("chalan", "delete")
def delete_chalan(chalan_id: int):
    number = billing.delete_chalan(g.user.company_id, chalan_id, user_id=g.user.id)

    log_event("CHALAN_DELETE", user_id=g.user.id, company_id=g.user.company_id,
              entity="chalan", entity_id=chalan_id, metadata={"chalan_number": number})
    return jsonify(message="Deleted", chalan_number=number), 200
