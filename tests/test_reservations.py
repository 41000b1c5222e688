from datetime import timedelta

import pytest

from conftest import BOOKING_DAY
from models import db
from models.room import Room
from services import billing
from services.errors import ConflictError, NotFoundError, StateError, ValidationError
from services.reservations import (
    cancel_reservation,
    create_reservation,
    delete_reservation,
    list_reservations,
    reactivate_reservation,
    reservation_logs,
    update_reservation,
)

ITEMS = [{"description": "Edit suite, 2 hours", "quantity": "2", "rate": "1500"}]


@pytest.fixture
def book(seed):
    def _book(fields):
        return create_reservation(seed.company.id, fields, user_id=seed.admin.id)
    return _book


def _actions(seed, reservation_id):
    return [e.action for e in reservation_logs(seed.company.id, reservation_id)]


class TestCreate:
    def test_defaults_to_planning_and_logs(self, seed, book, booking_fields):
        r = book(booking_fields())

        assert r.status == "planning"
        assert (r.from_minute, r.to_minute) == (600, 720)
        assert r.total_minutes == 120
        entries = reservation_logs(seed.company.id, r.id)
        assert [e.action for e in entries] == ["created"]
        assert seed.room.name in entries[0].changes
        assert entries[0].user_id == seed.admin.id

    def test_overlap_rejected_with_details(self, seed, book, booking_fields):
        first = book(booking_fields())

        with pytest.raises(ConflictError) as exc:
            book(booking_fields(from_time="11:00", to_time="13:00"))

        assert exc.value.code == "RESERVATION_CONFLICT"
        assert exc.value.details["conflicts"][0]["reservation_id"] == first.id
        assert len(list_reservations(seed.company.id)) == 1

    def test_back_to_back_allowed(self, book, booking_fields):
        book(booking_fields())
        second = book(booking_fields(from_time="12:00", to_time="14:00"))
        assert second.id is not None

    def test_crossing_midnight_rejected(self, book, booking_fields):
        with pytest.raises(ValidationError) as exc:
            book(booking_fields(from_time="22:00", to_time="02:00"))
        assert exc.value.code == "CROSSES_MIDNIGHT"

    def test_end_of_day(self, book, booking_fields):
        r = book(booking_fields(from_time="20:00", to_time="24:00"))
        assert r.to_minute == 1440

    def test_empty_range_rejected(self, book, booking_fields):
        with pytest.raises(ValidationError) as exc:
            book(booking_fields(from_time="10:00", to_time="10:00"))
        assert exc.value.field == "to_time"

    def test_project_must_belong_to_customer(self, seed, book, booking_fields):
        with pytest.raises(ValidationError) as exc:
            book(booking_fields(project_id=seed.other_project.id))
        assert exc.value.field == "project_id"

    def test_inactive_room_rejected(self, seed, book, booking_fields):
        room = db.session.get(Room, seed.room.id)
        room.is_active = False
        db.session.commit()

        with pytest.raises(ValidationError) as exc:
            book(booking_fields())
        assert exc.value.field == "room_id"

    def test_other_company_master_data_rejected(self, other_company, book, booking_fields):
        with pytest.raises(ValidationError) as exc:
            book(booking_fields(room_id=other_company.room.id))
        assert exc.value.field == "room_id"

    def test_cannot_create_cancelled(self, book, booking_fields):
        with pytest.raises(StateError) as exc:
            book(booking_fields(status="cancelled"))
        assert exc.value.code == "USE_CANCEL"

    def test_actual_times_and_break(self, book, booking_fields):
        r = book(booking_fields(actual_from_time="10:15", actual_to_time="13:00", break_minutes=45))
        assert r.total_minutes == 120

    def test_actual_times_come_in_pairs(self, book, booking_fields):
        with pytest.raises(ValidationError) as exc:
            book(booking_fields(actual_from_time="10:15"))
        assert exc.value.field == "actual_to_time"

    def test_break_longer_than_booking(self, book, booking_fields):
        with pytest.raises(ValidationError) as exc:
            book(booking_fields(break_minutes=180))
        assert exc.value.field == "break_minutes"

    def test_missing_times(self, book, booking_fields):
        fields = booking_fields()
        del fields["to_time"]
        with pytest.raises(ValidationError) as exc:
            book(fields)
        assert exc.value.field == "to_time"


class TestUpdate:
    def test_any_status_to_any_status(self, seed, book, booking_fields):
        r = book(booking_fields())
        for status in ("confirmed", "tentative", "planning", "confirmed"):
            r = update_reservation(seed.company.id, r.id, {"status": status}, user_id=seed.admin.id)
            assert r.status == status
        assert _actions(seed, r.id) == ["created"] + ["status_changed"] * 4

    def test_status_change_is_described(self, seed, book, booking_fields):
        r = book(booking_fields())
        update_reservation(seed.company.id, r.id, {"status": "tentative"})
        last = reservation_logs(seed.company.id, r.id)[-1]
        assert last.changes == "Status: planning -> tentative"

    def test_room_change_is_described(self, seed, book, booking_fields):
        r = book(booking_fields())
        update_reservation(seed.company.id, r.id, {"room_id": seed.room2.id, "to_time": "12:30"},
                           user_id=seed.gst.id)

        last = reservation_logs(seed.company.id, r.id)[-1]
        assert last.action == "updated"
        assert f"Room: {seed.room.name} -> {seed.room2.name}" in last.changes
        assert "Time: 10:00-12:00 -> 10:00-12:30" in last.changes
        assert last.user_id == seed.gst.id

    def test_no_op_update_writes_nothing(self, seed, book, booking_fields):
        r = book(booking_fields())
        update_reservation(seed.company.id, r.id, {"from_time": "10:00"})
        assert _actions(seed, r.id) == ["created"]

    def test_move_into_conflict_rejected(self, seed, book, booking_fields):
        book(booking_fields())
        second = book(booking_fields(editor_id=None, from_time="13:00", to_time="14:00"))

        with pytest.raises(ConflictError):
            update_reservation(seed.company.id, second.id, {"from_time": "11:00"})

        db.session.refresh(second)
        assert second.from_minute == 13 * 60

    def test_editing_own_slot_is_not_a_conflict(self, seed, book, booking_fields):
        r = book(booking_fields())
        r = update_reservation(seed.company.id, r.id, {"from_time": "09:00", "to_time": "11:00"})
        assert (r.from_minute, r.to_minute) == (540, 660)

    def test_cancelled_is_read_only(self, seed, book, booking_fields):
        r = book(booking_fields())
        cancel_reservation(seed.company.id, r.id, "Client postponed")

        with pytest.raises(StateError) as exc:
            update_reservation(seed.company.id, r.id, {"notes": "late change"})
        assert exc.value.code == "RESERVATION_CANCELLED"

    def test_status_cannot_be_set_to_cancelled(self, seed, book, booking_fields):
        r = book(booking_fields())
        with pytest.raises(StateError) as exc:
            update_reservation(seed.company.id, r.id, {"status": "cancelled"})
        assert exc.value.code == "USE_CANCEL"

    def test_other_company_is_not_found(self, seed, other_company, book, booking_fields):
        r = book(booking_fields())
        with pytest.raises(NotFoundError):
            update_reservation(other_company.company.id, r.id, {"status": "confirmed"})


class TestCancel:
    def test_cancel_frees_the_slot(self, seed, book, booking_fields):
        r = book(booking_fields())
        r = cancel_reservation(seed.company.id, r.id, "Client postponed", user_id=seed.admin.id)

        assert r.status == "cancelled"
        assert r.cancel_reason == "Client postponed"
        assert r.cancelled_at is not None
        assert book(booking_fields()).id != r.id

        last = reservation_logs(seed.company.id, r.id)[-1]
        assert (last.action, last.changes) == ("cancelled", "Cancelled: Client postponed")

    def test_reason_required(self, seed, book, booking_fields):
        r = book(booking_fields())
        with pytest.raises(ValidationError) as exc:
            cancel_reservation(seed.company.id, r.id, "   ")
        assert exc.value.field == "reason"

    def test_double_cancel(self, seed, book, booking_fields):
        r = book(booking_fields())
        cancel_reservation(seed.company.id, r.id, "first")
        with pytest.raises(StateError) as exc:
            cancel_reservation(seed.company.id, r.id, "second")
        assert exc.value.code == "RESERVATION_ALREADY_CANCELLED"

    def test_chalan_stays_active_by_default(self, seed, book, booking_fields):
        r = book(booking_fields(status="confirmed"))
        chalan = billing.create_chalan(seed.company.id, r.id, ITEMS)

        cancel_reservation(seed.company.id, r.id, "Client postponed")

        assert billing.get_chalan(seed.company.id, chalan.id).is_cancelled is False
        last = reservation_logs(seed.company.id, r.id)[-1]
        assert f"chalan {chalan.chalan_number} remains active" in last.changes

    def test_cascade_cancels_chalan(self, app, monkeypatch, seed, book, booking_fields):
        monkeypatch.setitem(app.config, "BOOKING_CANCEL_CASCADES_CHALAN", True)
        r = book(booking_fields(status="confirmed"))
        chalan = billing.create_chalan(seed.company.id, r.id, ITEMS)

        cancel_reservation(seed.company.id, r.id, "Client postponed")

        assert billing.get_chalan(seed.company.id, chalan.id).is_cancelled is True
        assert _actions(seed, r.id)[-2:] == ["cancelled", "chalan_cancelled"]


class TestReactivate:
    def test_returns_to_planning(self, seed, book, booking_fields):
        r = book(booking_fields(status="confirmed"))
        cancel_reservation(seed.company.id, r.id, "Client postponed")

        r = reactivate_reservation(seed.company.id, r.id, user_id=seed.admin.id)

        assert r.status == "planning"
        assert r.cancel_reason is None
        assert _actions(seed, r.id)[-1] == "reactivated"

    def test_slot_taken_meanwhile(self, seed, book, booking_fields):
        r = book(booking_fields())
        cancel_reservation(seed.company.id, r.id, "Client postponed")
        book(booking_fields())

        with pytest.raises(ConflictError):
            reactivate_reservation(seed.company.id, r.id)
        assert _actions(seed, r.id)[-1] == "cancelled"

    def test_only_cancelled(self, seed, book, booking_fields):
        r = book(booking_fields())
        with pytest.raises(StateError) as exc:
            reactivate_reservation(seed.company.id, r.id)
        assert exc.value.code == "RESERVATION_NOT_CANCELLED"


class TestDelete:
    def test_delete_keeps_history(self, seed, book, booking_fields):
        r = book(booking_fields())
        reservation_id = r.id

        delete_reservation(seed.company.id, reservation_id, user_id=seed.admin.id)

        assert list_reservations(seed.company.id) == []
        assert _actions(seed, reservation_id) == ["created", "deleted"]

    def test_new_booking_after_delete_starts_a_fresh_trail(self, seed, book, booking_fields):
        old_id = book(booking_fields()).id
        delete_reservation(seed.company.id, old_id, user_id=seed.admin.id)

        r = book(booking_fields())

        assert r.id != old_id
        assert _actions(seed, r.id) == ["created"]
        assert _actions(seed, old_id) == ["created", "deleted"]

    def test_confirmed_needs_override(self, seed, book, booking_fields):
        r = book(booking_fields(status="confirmed"))
        with pytest.raises(StateError) as exc:
            delete_reservation(seed.company.id, r.id)
        assert exc.value.code == "RESERVATION_CONFIRMED"

        delete_reservation(seed.company.id, r.id, allow_confirmed=True)
        assert list_reservations(seed.company.id) == []

    def test_chalan_blocks_delete(self, seed, book, booking_fields):
        r = book(booking_fields(status="confirmed"))
        chalan = billing.create_chalan(seed.company.id, r.id, ITEMS)
        billing.cancel_chalan(seed.company.id, chalan.id, "wrong rate")

        with pytest.raises(ConflictError) as exc:
            delete_reservation(seed.company.id, r.id, allow_confirmed=True)
        assert exc.value.code == "RESERVATION_HAS_CHALAN"
        assert exc.value.details["chalan_number"] == chalan.chalan_number


class TestListing:
    def test_range_is_inclusive_and_includes_cancelled(self, seed, book, booking_fields):
        day1 = book(booking_fields())
        day2 = book(booking_fields(booking_date=(BOOKING_DAY + timedelta(days=1)).isoformat()))
        book(booking_fields(booking_date=(BOOKING_DAY + timedelta(days=5)).isoformat()))
        cancel_reservation(seed.company.id, day2.id, "moved")

        rows = list_reservations(seed.company.id, date_from=BOOKING_DAY.isoformat(),
                                 date_to=(BOOKING_DAY + timedelta(days=1)).isoformat())
        assert [r.id for r in rows] == [day1.id, day2.id]

        cancelled = list_reservations(seed.company.id, status="cancelled")
        assert [r.id for r in cancelled] == [day2.id]

    def test_filters(self, seed, book, booking_fields):
        a = book(booking_fields())
        b = book(booking_fields(room_id=seed.room2.id, editor_id=seed.editor2.id))
        assert [r.id for r in list_reservations(seed.company.id, room_id=seed.room2.id)] == [b.id]
        assert [r.id for r in list_reservations(seed.company.id, editor_id=seed.editor.id)] == [a.id]

    def test_bad_range(self, seed):
        with pytest.raises(ValidationError):
            list_reservations(seed.company.id, date_from="2026-03-05", date_to="2026-03-01")

    def test_tenant_scope(self, seed, other_company, book, booking_fields):
        book(booking_fields())
        assert list_reservations(other_company.company.id) == []

    def test_logs_for_unknown_booking(self, seed):
        with pytest.raises(NotFoundError):
            reservation_logs(seed.company.id, 9999)
