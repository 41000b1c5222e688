"""
Conflict detection for rooms and editors.

A candidate reservation conflicts with every non-cancelled reservation that
holds the same resource on the same date with an overlapping [from, to)
range. The check is a read-only pre-filter; the overlap constraints on the
reservations table remain the authority when two writers race.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from models.reservation import Reservation
from services.resources import ResourceKey, ResourceKind
from services.time_range import TimeRange, format_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictingReservation:
    id: int
    kind: ResourceKind
    resource_id: int
    customer_id: int
    customer_name: Optional[str]
    time_range: TimeRange
    status: str

    def to_dict(self):
        return {
            "reservation_id": self.id,
            "resource_kind": self.kind.value,
            "resource_id": self.resource_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "from_time": format_clock(self.time_range.start),
            "to_time": format_clock(self.time_range.end),
            "status": self.status,
        }


@dataclass
class ConflictResult:
    conflicts: List[ConflictingReservation] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts)

    def merge(self, other: "ConflictResult") -> "ConflictResult":
        return ConflictResult(self.conflicts + other.conflicts)

    def to_details(self):
        return {"conflicts": [c.to_dict() for c in self.conflicts]}


def check_conflict(
    company_id: int,
    kind: ResourceKind,
    resource_id: int,
    booking_date: date,
    time_range: TimeRange,
    exclude_reservation_id: Optional[int] = None,
) -> ConflictResult:
    key = ResourceKey(ResourceKind(kind), resource_id, booking_date)
    if time_range.is_empty:
        return ConflictResult()

    q = Reservation.query.filter(
        Reservation.company_id == company_id,
        key.kind.column == key.resource_id,
        Reservation.booking_date == key.booking_date,
        Reservation.status != "cancelled",
    )
    if exclude_reservation_id is not None:
        q = q.filter(Reservation.id != exclude_reservation_id)

    conflicts = []
    for r in q.order_by(Reservation.from_minute.asc(), Reservation.id.asc()).all():
        existing = TimeRange(r.from_minute, r.to_minute)
        if time_range.overlaps(existing):
            conflicts.append(ConflictingReservation(
                id=r.id,
                kind=key.kind,
                resource_id=key.resource_id,
                customer_id=r.customer_id,
                customer_name=r.customer.name if r.customer else None,
                time_range=existing,
                status=r.status,
            ))

    if conflicts:
        logger.debug("%s conflicts with reservations %s", key, [c.id for c in conflicts])
    return ConflictResult(conflicts)


def check_reservation_conflicts(
    company_id: int,
    room_id: int,
    editor_id: Optional[int],
    booking_date: date,
    time_range: TimeRange,
    exclude_reservation_id: Optional[int] = None,
) -> ConflictResult:
    """Room check plus, when an editor is assigned, the editor check."""
    result = check_conflict(company_id, ResourceKind.ROOM, room_id, booking_date, time_range,
                            exclude_reservation_id)
    if editor_id is not None:
        result = result.merge(check_conflict(company_id, ResourceKind.EDITOR, editor_id, booking_date,
                                             time_range, exclude_reservation_id))
    return result
