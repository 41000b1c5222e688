from dataclasses import dataclass
from datetime import date
from enum import Enum

from models.reservation import Reservation, ROOM_OVERLAP_CONSTRAINT, EDITOR_OVERLAP_CONSTRAINT


class ResourceKind(str, Enum):
    ROOM = "room"
    EDITOR = "editor"

    @property
    def column(self):
        """Reservation column holding this kind of resource."""
        return Reservation.room_id if self is ResourceKind.ROOM else Reservation.editor_id

    @property
    def constraint_name(self) -> str:
        return ROOM_OVERLAP_CONSTRAINT if self is ResourceKind.ROOM else EDITOR_OVERLAP_CONSTRAINT


@dataclass(frozen=True)
class ResourceKey:
    """One schedulable resource instance on one calendar day."""

    kind: ResourceKind
    resource_id: int
    booking_date: date

    def __str__(self):
        return f"{self.kind.value}:{self.resource_id}@{self.booking_date.isoformat()}"
