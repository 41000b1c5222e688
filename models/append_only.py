"""Insert-only guard for history tables.

Rows of a protected model can be added but never changed or removed through
the ORM, whether one instance at a time or with a bulk UPDATE/DELETE.
"""
from sqlalchemy import event
from sqlalchemy.orm import Session

_PROTECTED = set()


class AppendOnlyViolation(RuntimeError):
    pass


def _reject_instance_write(mapper, connection, target):
    raise AppendOnlyViolation(f"{mapper.class_.__tablename__} is append-only")


def append_only(model):
    """Class decorator registering *model* as insert-only."""
    _PROTECTED.add(model)
    event.listen(model, "before_update", _reject_instance_write)
    event.listen(model, "before_delete", _reject_instance_write)
    return model


@event.listens_for(Session, "do_orm_execute")
def _reject_bulk_write(orm_execute_state):
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    for mapper in orm_execute_state.all_mappers:
        if mapper.class_ in _PROTECTED:
            raise AppendOnlyViolation(f"{mapper.class_.__tablename__} is append-only")
