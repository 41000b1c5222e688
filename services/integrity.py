"""Identify which database constraint an IntegrityError came from.

PostgreSQL reports constraint names; SQLite reports trigger messages for the
overlap guards but only column lists for unique indexes, so both spellings
are matched.
"""
from models.chalan import ACTIVE_CHALAN_INDEX
from models.chalan_revision import REVISION_NUMBER_CONSTRAINT
from models.reservation import ROOM_OVERLAP_CONSTRAINT, EDITOR_OVERLAP_CONSTRAINT

FOREIGN_KEY = "foreign_key"
CHALAN_NUMBER = "chalan_number"

_MARKERS = {
    ROOM_OVERLAP_CONSTRAINT: (ROOM_OVERLAP_CONSTRAINT,),
    EDITOR_OVERLAP_CONSTRAINT: (EDITOR_OVERLAP_CONSTRAINT,),
    ACTIVE_CHALAN_INDEX: (ACTIVE_CHALAN_INDEX, "chalans.reservation_id"),
    REVISION_NUMBER_CONSTRAINT: (
        REVISION_NUMBER_CONSTRAINT,
        "chalan_revisions.chalan_id, chalan_revisions.revision_number",
    ),
    CHALAN_NUMBER: (
        "uq_chalans_company_number",
        "chalans.company_id, chalans.chalan_number",
        "chalan_sequences.scope_key",
    ),
    FOREIGN_KEY: ("FOREIGN KEY constraint failed", "violates foreign key constraint"),
}


def violated_constraint(exc):
    message = str(getattr(exc, "orig", None) or exc)
    for name, markers in _MARKERS.items():
        if any(marker in message for marker in markers):
            return name
    return None
