from datetime import timedelta

from conftest import BOOKING_DAY
from services.conflicts import check_conflict, check_reservation_conflicts
from services.reservations import cancel_reservation, create_reservation
from services.resources import ResourceKind
from services.time_range import TimeRange


def _book(seed, fields):
    return create_reservation(seed.company.id, fields, user_id=seed.admin.id)


def test_overlapping_room_is_reported(seed, booking_fields):
    existing = _book(seed, booking_fields(editor_id=None))

    result = check_conflict(seed.company.id, ResourceKind.ROOM, seed.room.id, BOOKING_DAY,
                            TimeRange.parse("11:00", "13:00"))

    assert result.has_conflict
    assert [c.id for c in result.conflicts] == [existing.id]
    details = result.to_details()["conflicts"][0]
    assert details["from_time"] == "10:00"
    assert details["to_time"] == "12:00"
    assert details["customer_name"] == seed.customer.name


def test_adjacent_booking_is_free(seed, booking_fields):
    _book(seed, booking_fields())
    result = check_reservation_conflicts(seed.company.id, seed.room.id, seed.editor.id, BOOKING_DAY,
                                         TimeRange.parse("12:00", "14:00"))
    assert not result.has_conflict


def test_other_date_and_other_room_are_free(seed, booking_fields):
    _book(seed, booking_fields(editor_id=None))
    span = TimeRange.parse("10:00", "12:00")
    assert not check_conflict(seed.company.id, ResourceKind.ROOM, seed.room.id,
                              BOOKING_DAY + timedelta(days=1), span).has_conflict
    assert not check_conflict(seed.company.id, ResourceKind.ROOM, seed.room2.id,
                              BOOKING_DAY, span).has_conflict


def test_editor_conflict_in_another_room(seed, booking_fields):
    existing = _book(seed, booking_fields())
    result = check_reservation_conflicts(seed.company.id, seed.room2.id, seed.editor.id, BOOKING_DAY,
                                         TimeRange.parse("11:30", "12:30"))
    assert [(c.kind, c.id) for c in result.conflicts] == [(ResourceKind.EDITOR, existing.id)]


def test_no_editor_skips_editor_check(seed, booking_fields):
    _book(seed, booking_fields())
    result = check_reservation_conflicts(seed.company.id, seed.room2.id, None, BOOKING_DAY,
                                         TimeRange.parse("10:00", "12:00"))
    assert not result.has_conflict


def test_cancelled_bookings_are_ignored(seed, booking_fields):
    existing = _book(seed, booking_fields())
    cancel_reservation(seed.company.id, existing.id, "Client postponed", user_id=seed.admin.id)

    result = check_reservation_conflicts(seed.company.id, seed.room.id, seed.editor.id, BOOKING_DAY,
                                         TimeRange.parse("10:00", "12:00"))
    assert not result.has_conflict


def test_exclude_self_when_editing(seed, booking_fields):
    existing = _book(seed, booking_fields())
    result = check_reservation_conflicts(seed.company.id, seed.room.id, seed.editor.id, BOOKING_DAY,
                                         TimeRange.parse("10:30", "11:30"),
                                         exclude_reservation_id=existing.id)
    assert not result.has_conflict


def test_other_company_is_invisible(seed, other_company, booking_fields):
    _book(seed, booking_fields())
    result = check_conflict(other_company.company.id, ResourceKind.ROOM, seed.room.id, BOOKING_DAY,
                            TimeRange.parse("10:00", "12:00"))
    assert not result.has_conflict


def test_both_resources_reported_together(seed, booking_fields):
    room_holder = _book(seed, booking_fields(editor_id=None))
    editor_holder = _book(seed, booking_fields(room_id=seed.room2.id, editor_id=seed.editor.id,
                                               from_time="12:00", to_time="14:00"))

    result = check_reservation_conflicts(seed.company.id, seed.room.id, seed.editor.id, BOOKING_DAY,
                                         TimeRange.parse("11:00", "13:00"))
    assert {(c.kind, c.id) for c in result.conflicts} == {
        (ResourceKind.ROOM, room_holder.id),
        (ResourceKind.EDITOR, editor_holder.id),
    }
