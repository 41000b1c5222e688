"""
Chalan (billing document) lifecycle.

A chalan is raised from exactly one confirmed reservation. At most one
active chalan may exist per reservation: the check below gives callers a
precise error, and the partial unique index uq_chalans_active_reservation
settles races. Every revision appends a numbered ChalanRevision; cancelling
and reactivating never touch the revision counter.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db
from models.chalan import Chalan, ChalanItem
from models.chalan_revision import ChalanRevision
from models.chalan_sequence import ChalanSequence
from models.reservation import Reservation
from services.errors import ConflictError, NotFoundError, StateError, ValidationError
from services.fields import parse_date, parse_int, parse_text
from services.integrity import CHALAN_NUMBER, FOREIGN_KEY, REVISION_NUMBER_CONSTRAINT, violated_constraint

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
# Numeric(12, 2) for quantity and rate, Numeric(14, 2) for amounts
MAX_INPUT = Decimal(10) ** 10
MAX_AMOUNT = Decimal(10) ** 12


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal


def _decimal(value, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        number = Decimal(str(value).strip())
        if not number.is_finite():
            raise ValidationError(f"{field} must be a number", field=field)
        number = number.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if abs(number) >= MAX_INPUT:
        raise ValidationError(f"{field} is too large", field=field)
    return number


def compute_items(raw_items) -> Tuple[List[LineItem], Decimal]:
    """Validate line items and compute amounts and total server-side.

    Any amount or total sent by the client is ignored.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one line item is required", field="items")

    items = []
    for idx, raw in enumerate(raw_items):
        prefix = f"items[{idx}]"
        if not isinstance(raw, dict):
            raise ValidationError("Each line item must be an object", field=prefix)
        description = parse_text(raw.get("description"), f"{prefix}.description", required=True, max_length=255)
        quantity = _decimal(raw.get("quantity", 1), f"{prefix}.quantity")
        rate = _decimal(raw.get("rate", 0), f"{prefix}.rate")
        if quantity <= 0:
            raise ValidationError("quantity must be greater than zero", field=f"{prefix}.quantity")
        if rate < 0:
            raise ValidationError("rate cannot be negative", field=f"{prefix}.rate")
        amount = (quantity * rate).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        if amount >= MAX_AMOUNT:
            raise ValidationError("amount is too large", field=prefix)
        items.append(LineItem(description, quantity, rate, amount))

    total = sum((item.amount for item in items), Decimal("0.00"))
    if total >= MAX_AMOUNT:
        raise ValidationError("total is too large", field="items")
    return items, total


def next_chalan_number(company_id: int) -> str:
    """Allocate the next document number inside the caller's transaction."""
    scope = current_app.config.get("CHALAN_NUMBER_SCOPE", "company")
    scope_key = "global" if scope == "global" else f"company:{company_id}"

    seq = ChalanSequence.query.filter_by(scope_key=scope_key).with_for_update().first()
    if seq is None:
        seq = ChalanSequence(scope_key=scope_key, last_value=0)
        db.session.add(seq)
    seq.last_value += 1
    db.session.flush()

    prefix = current_app.config.get("CHALAN_NUMBER_PREFIX", "CH")
    width = current_app.config.get("CHALAN_NUMBER_WIDTH", 5)
    return f"{prefix}-{seq.last_value:0{width}d}"


def get_chalan(company_id: int, chalan_id: int) -> Chalan:
    chalan = Chalan.query.filter_by(id=chalan_id, company_id=company_id).first()
    if not chalan:
        raise NotFoundError("Chalan not found")
    return chalan


def active_chalan_for(company_id: int, reservation_id: int) -> Optional[Chalan]:
    return Chalan.query.filter_by(
        company_id=company_id, reservation_id=reservation_id, is_cancelled=False
    ).first()


def _duplicate_error(existing: Chalan) -> ConflictError:
    return ConflictError(
        f"Booking already has an active chalan ({existing.chalan_number})",
        code="CHALAN_EXISTS",
        details={
            "reservation_id": existing.reservation_id,
            "chalan_id": existing.id,
            "chalan_number": existing.chalan_number,
        },
    )


def _ensure_no_active_chalan(company_id: int, reservation_id: int):
    existing = active_chalan_for(company_id, reservation_id)
    if existing is not None:
        raise _duplicate_error(existing)


def _build_items(line_items: List[LineItem]) -> List[ChalanItem]:
    return [
        ChalanItem(
            position=position,
            description=item.description,
            quantity=item.quantity,
            rate=item.rate,
            amount=item.amount,
        )
        for position, item in enumerate(line_items)
    ]


def create_chalan(company_id: int, reservation_id, items, notes=None, chalan_date=None, user_id=None) -> Chalan:
    reservation_id = parse_int(reservation_id, "reservation_id")
    reservation = Reservation.query.filter_by(id=reservation_id, company_id=company_id).first()
    if not reservation:
        raise NotFoundError("Booking not found")
    if reservation.status != "confirmed":
        raise StateError(
            "Chalans can only be raised for confirmed bookings",
            code="RESERVATION_NOT_CONFIRMED",
            details={"reservation_id": reservation.id, "status": reservation.status},
        )

    line_items, total = compute_items(items)
    doc_date = parse_date(chalan_date, "chalan_date", required=False) or reservation.booking_date
    notes = parse_text(notes, "notes") or None

    _ensure_no_active_chalan(company_id, reservation_id)

    try:
        chalan = Chalan(
            company_id=company_id,
            chalan_number=next_chalan_number(company_id),
            reservation_id=reservation.id,
            customer_id=reservation.customer_id,
            project_id=reservation.project_id,
            room_id=reservation.room_id,
            editor_id=reservation.editor_id,
            chalan_date=doc_date,
            from_minute=reservation.from_minute,
            to_minute=reservation.to_minute,
            actual_from_minute=reservation.actual_from_minute,
            actual_to_minute=reservation.actual_to_minute,
            break_minutes=reservation.break_minutes,
            total_minutes=reservation.total_minutes,
            notes=notes,
            total_amount=total,
            created_by=user_id,
        )
        chalan.items = _build_items(line_items)
        db.session.add(chalan)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        existing = active_chalan_for(company_id, reservation_id)
        if existing is not None:
            logger.warning("Duplicate chalan for reservation %s rejected by the database", reservation_id)
            raise _duplicate_error(existing) from exc
        name = violated_constraint(exc)
        if name == CHALAN_NUMBER:
            raise ConflictError("Chalan number was taken concurrently; retry", code="CHALAN_NUMBER_CONFLICT") from exc
        if name == FOREIGN_KEY:
            raise ValidationError("Booking references a missing record", field="reservation_id") from exc
        raise

    logger.info("Chalan %s created for reservation %s", chalan.chalan_number, reservation_id)
    return chalan


def _summarize_revision(before_count, after_count, before_total, after_total, notes_changed):
    parts = []
    if before_count != after_count:
        parts.append(f"Items: {before_count} -> {after_count}")
    if before_total != after_total:
        parts.append(f"Total: {before_total} -> {after_total}")
    if notes_changed:
        parts.append("Notes updated")
    return "; ".join(parts) or "Line items updated"


def revise_chalan(company_id: int, chalan_id: int, items, notes=None, changes=None, user_id=None) -> ChalanRevision:
    """Replace the items (and notes, when given) and append one revision."""
    chalan = get_chalan(company_id, chalan_id)
    if chalan.is_cancelled:
        raise StateError(
            "Chalan is cancelled and read-only; reactivate it first",
            code="CHALAN_CANCELLED",
            details={"chalan_id": chalan.id},
        )

    line_items, total = compute_items(items)
    new_notes = None if notes is None else (parse_text(notes, "notes") or None)
    notes_changed = notes is not None and new_notes != chalan.notes
    before_count = len(chalan.items)
    before_total = Decimal(chalan.total_amount or 0).quantize(TWO_PLACES)

    description = parse_text(changes, "changes") or _summarize_revision(
        before_count, len(line_items), before_total, total, notes_changed
    )

    last = (
        db.session.query(func.max(ChalanRevision.revision_number))
        .filter(ChalanRevision.chalan_id == chalan.id)
        .scalar()
    )
    revision_number = (last or 0) + 1

    chalan.items = _build_items(line_items)
    chalan.total_amount = total
    if notes is not None:
        chalan.notes = new_notes
    chalan.revision_count = revision_number

    revision = ChalanRevision(
        company_id=company_id,
        chalan_id=chalan.id,
        chalan_number=chalan.chalan_number,
        revision_number=revision_number,
        changes=description,
        user_id=user_id,
    )
    db.session.add(revision)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if violated_constraint(exc) == REVISION_NUMBER_CONSTRAINT:
            logger.warning("Concurrent revision of chalan %s rejected", chalan_id)
            raise ConflictError(
                "Chalan was revised by someone else; reload and retry",
                code="CHALAN_REVISION_CONFLICT",
                details={"chalan_id": chalan_id},
            ) from exc
        raise

    logger.info("Chalan %s revised (revision %s)", chalan.chalan_number, revision_number)
    return revision


def mark_cancelled(chalan: Chalan, reason: str):
    """Flag *chalan* cancelled in the current transaction without committing."""
    chalan.is_cancelled = True
    chalan.cancel_reason = reason[:255]
    chalan.cancelled_at = datetime.utcnow()


def cancel_chalan(company_id: int, chalan_id: int, reason, user_id=None) -> Chalan:
    reason = parse_text(reason, "reason", required=True)
    chalan = get_chalan(company_id, chalan_id)
    if chalan.is_cancelled:
        raise StateError("Chalan is already cancelled", code="CHALAN_ALREADY_CANCELLED",
                         details={"chalan_id": chalan.id})

    mark_cancelled(chalan, reason)
    db.session.commit()
    logger.info("Chalan %s cancelled by user %s", chalan.chalan_number, user_id)
    return chalan


def reactivate_chalan(company_id: int, chalan_id: int, user_id=None) -> Chalan:
    chalan = get_chalan(company_id, chalan_id)
    if not chalan.is_cancelled:
        raise StateError("Chalan is not cancelled", code="CHALAN_NOT_CANCELLED",
                         details={"chalan_id": chalan.id})

    reservation_id = chalan.reservation_id
    other = active_chalan_for(company_id, reservation_id)
    if other is not None:
        raise _duplicate_error(other)

    chalan.is_cancelled = False
    chalan.cancel_reason = None
    chalan.cancelled_at = None
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        existing = active_chalan_for(company_id, reservation_id)
        if existing is not None:
            raise _duplicate_error(existing) from exc
        raise

    logger.info("Chalan %s reactivated by user %s", chalan.chalan_number, user_id)
    return chalan


def set_chalan_status(company_id: int, chalan_id: int, is_cancelled, reason=None, user_id=None) -> Chalan:
    """Toggle used by the status switch: True cancels, False reactivates."""
    if not isinstance(is_cancelled, bool):
        raise ValidationError("is_cancelled must be true or false", field="is_cancelled")
    if is_cancelled:
        return cancel_chalan(company_id, chalan_id, reason, user_id=user_id)
    return reactivate_chalan(company_id, chalan_id, user_id=user_id)


def delete_chalan(company_id: int, chalan_id: int, user_id=None) -> str:
    """Hard delete. The revision list is kept as the durable history."""
    chalan = get_chalan(company_id, chalan_id)
    number = chalan.chalan_number
    db.session.delete(chalan)
    db.session.commit()
    logger.info("Chalan %s deleted by user %s", number, user_id)
    return number


def list_revisions(company_id: int, chalan_id: int) -> List[ChalanRevision]:
    rows = (
        ChalanRevision.query
        .filter_by(company_id=company_id, chalan_id=chalan_id)
        .order_by(ChalanRevision.revision_number.asc())
        .all()
    )
    if not rows and Chalan.query.filter_by(id=chalan_id, company_id=company_id).first() is None:
        raise NotFoundError("Chalan not found")
    return rows


def list_chalans(company_id: int, customer_id=None, project_ids=None, reservation_id=None,
                 include_cancelled: bool = True) -> List[Chalan]:
    q = Chalan.query.filter_by(company_id=company_id)
    if customer_id is not None:
        q = q.filter(Chalan.customer_id == customer_id)
    if project_ids:
        q = q.filter(Chalan.project_id.in_(project_ids))
    if reservation_id is not None:
        q = q.filter(Chalan.reservation_id == reservation_id)
    if not include_cancelled:
        q = q.filter(Chalan.is_cancelled.is_(False))
    return q.order_by(Chalan.created_at.desc(), Chalan.id.desc()).all()
