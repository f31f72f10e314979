import threading
import time
from datetime import date, datetime

import pytest

from common.errors import NotFound, ValidationError
from reservations.manager import ReservationManager
from reservations.models import ReservationStatus, ReservationUpdate


@pytest.fixture
def manager(store, side_effects, clock):
    return ReservationManager(store, side_effects=side_effects, clock=clock)


def test_create_without_overlap_is_confirmed(manager, store, audit_log, at):
    reservation = manager.create("v1", at(10), at(11), "Site visit", requester_id="u1")

    assert reservation.status == ReservationStatus.CONFIRMED
    assert store.get_reservation(reservation.id).status == ReservationStatus.CONFIRMED
    assert store.list_pending_conflicts() == []
    assert audit_log.actions() == ["reservation.create"]


def test_higher_priority_overlap_demotes_existing(manager, store, at):
    existing = manager.create("v1", at(10), at(11), "Board prep", requester_id="u1", priority_level=3)
    new = manager.create("v1", at(9, 30), at(10, 30), "CEO pickup", requester_id="u2", priority_level=5)

    assert new.status == ReservationStatus.PENDING_CONFLICT
    assert store.get_reservation(existing.id).status == ReservationStatus.PENDING_CONFLICT

    [conflict] = store.list_pending_conflicts()
    assert conflict.winning_reservation_id == new.id
    assert conflict.losing_reservation_id == existing.id


@pytest.mark.parametrize("new_priority", [0, 3])
def test_equal_or_lower_priority_overlap_keeps_existing(manager, store, at, new_priority):
    existing = manager.create("v1", at(10), at(11), "Board prep", requester_id="u1", priority_level=3)
    new = manager.create("v1", at(10, 30), at(12), "Errand", requester_id="u2", priority_level=new_priority)

    assert new.status == ReservationStatus.PENDING_CONFLICT
    assert store.get_reservation(existing.id).status == ReservationStatus.CONFIRMED

    [conflict] = store.list_pending_conflicts()
    assert conflict.winning_reservation_id == existing.id
    assert conflict.losing_reservation_id == new.id


def test_one_conflict_per_overlapping_booking(manager, store, at):
    first = manager.create("v1", at(9), at(10), "A", requester_id="u1")
    second = manager.create("v1", at(10), at(11), "B", requester_id="u1")
    third = manager.create("v1", at(9, 30), at(10, 30), "C", requester_id="u2")

    conflicts = store.list_pending_conflicts()
    assert {c.winning_reservation_id for c in conflicts} == {first.id, second.id}
    assert {c.losing_reservation_id for c in conflicts} == {third.id}


def test_back_to_back_bookings_do_not_conflict(manager, store, at):
    manager.create("v1", at(10), at(11), "A", requester_id="u1")
    after = manager.create("v1", at(11), at(12), "B", requester_id="u1")

    assert after.status == ReservationStatus.CONFIRMED
    assert store.list_pending_conflicts() == []


def test_cancelled_booking_no_longer_blocks(manager, at):
    existing = manager.create("v1", at(10), at(11), "A", requester_id="u1")
    manager.cancel(existing.id, "u1", "plans changed")

    again = manager.create("v1", at(10), at(11), "B", requester_id="u2")
    assert again.status == ReservationStatus.CONFIRMED


def test_create_validates_window_and_vehicle(manager, at):
    with pytest.raises(ValidationError) as excinfo:
        manager.create("v1", at(11), at(10), "A", requester_id="u1")
    assert excinfo.value.code == "INVALID_TIME_RANGE"

    with pytest.raises(ValidationError) as excinfo:
        manager.create("v1", at(7), at(9), "A", requester_id="u1")
    assert excinfo.value.code == "PAST_TIME"

    with pytest.raises(NotFound):
        manager.create("nope", at(10), at(11), "A", requester_id="u1")


def test_create_rejects_times_without_timezone(manager, store):
    with pytest.raises(ValidationError) as excinfo:
        manager.create("v1", datetime(2026, 1, 6, 10), datetime(2026, 1, 6, 11), "A", requester_id="u1")

    assert excinfo.value.code == "INVALID_TIME_RANGE"
    assert store.list_reservations() == []


def test_update_merges_fields_and_rejects_inverted_window(manager, audit_log, at):
    reservation = manager.create("v1", at(10), at(11), "A", requester_id="u1", notes="gate 3")

    updated = manager.update(reservation.id, ReservationUpdate(purpose="B", end_time=at(12)), "admin")
    assert updated.purpose == "B"
    assert updated.end_time == at(12)
    assert updated.notes == "gate 3"
    assert manager.get(reservation.id).purpose == "B"

    with pytest.raises(ValidationError):
        manager.update(reservation.id, ReservationUpdate(start_time=at(13)), "admin")

    assert audit_log.actions() == ["reservation.create", "reservation.update"]


def test_update_onto_unknown_vehicle_is_rejected(manager, audit_log, at):
    reservation = manager.create("v1", at(10), at(11), "A", requester_id="u1")

    with pytest.raises(NotFound):
        manager.update(reservation.id, ReservationUpdate(vehicle_id="ghost"), "admin")

    assert manager.get(reservation.id).vehicle_id == "v1"
    assert audit_log.actions() == ["reservation.create"]


def test_update_rejects_time_without_timezone(manager, at):
    reservation = manager.create("v1", at(10), at(11), "A", requester_id="u1")

    with pytest.raises(ValidationError) as excinfo:
        manager.update(reservation.id, ReservationUpdate(end_time=datetime(2026, 1, 5, 12)), "admin")

    assert excinfo.value.code == "INVALID_TIME_RANGE"
    assert manager.get(reservation.id).end_time == at(11)


def test_cancel_records_who_and_why(manager, audit_log, at):
    reservation = manager.create("v1", at(10), at(11), "A", requester_id="u1")
    manager.cancel(reservation.id, "u1", "no longer needed")

    cancelled = manager.get(reservation.id)
    assert cancelled.status == ReservationStatus.CANCELLED
    assert cancelled.cancelled_by == "u1"
    assert cancelled.cancel_reason == "no longer needed"
    assert audit_log.entries[-1].reason == "no longer needed"

    with pytest.raises(NotFound):
        manager.cancel("missing", "u1")


def test_check_availability_lists_overlaps(manager, at):
    booked = manager.create("v1", at(10), at(11), "A", requester_id="u1")

    assert [r.id for r in manager.check_availability("v1", at(10, 30), at(12))] == [booked.id]
    assert manager.check_availability("v1", at(11), at(12)) == []
    assert manager.check_availability("v2", at(10), at(11)) == []


def test_list_filters_and_paginates(manager, at):
    a = manager.create("v1", at(9), at(10), "A", requester_id="u1")
    b = manager.create("v1", at(12), at(13), "B", requester_id="u1")
    c = manager.create("v2", at(10), at(11), "C", requester_id="u1")

    assert [r.id for r in manager.list()] == [a.id, c.id, b.id]
    assert [r.id for r in manager.list(vehicle_id="v1")] == [a.id, b.id]
    assert [r.id for r in manager.list(from_time=at(10, 30), to_time=at(12, 30))] == [c.id, b.id]
    assert [r.id for r in manager.list(limit=1, offset=1)] == [c.id]
    assert manager.list(status=ReservationStatus.CANCELLED) == []


def test_vehicle_timeline_covers_the_day(manager, at):
    morning = manager.create("v1", at(9), at(10), "A", requester_id="u1")
    manager.create("v1", at(9, days=1), at(10, days=1), "Tomorrow", requester_id="u1")
    cancelled = manager.create("v1", at(14), at(15), "B", requester_id="u1")
    manager.cancel(cancelled.id, "u1")

    timeline = manager.vehicle_timeline("v1", date(2026, 1, 5))
    assert [r.id for r in timeline] == [morning.id]


def test_reminders_hit_the_one_minute_slice(manager, notifier, clock, at):
    due = manager.create("v1", at(8, 29), at(9), "A", requester_id="u1")
    manager.create("v2", at(8, 31), at(9), "B", requester_id="u2")

    reminded = manager.upcoming_reminders()
    assert [r.id for r in reminded] == [due.id]
    assert notifier.sent == [
        ("user", "u1", "Reservation Reminder", {"type": "reservation_reminder", "reservation_id": due.id}),
    ]

    # A minute later the first booking has left the slice and the second has entered it
    clock.advance(minutes=2)
    assert [r.requester_id for r in manager.upcoming_reminders()] == ["u2"]


def test_complete_expired_only_touches_finished_confirmed(manager, clock, at):
    done = manager.create("v1", at(9), at(10), "A", requester_id="u1")
    running = manager.create("v2", at(9), at(11), "B", requester_id="u1")

    clock.advance(hours=2, minutes=30)
    assert manager.complete_expired() == 1
    assert manager.get(done.id).status == ReservationStatus.COMPLETED
    assert manager.get(running.id).status == ReservationStatus.CONFIRMED


def test_concurrent_bookings_on_one_slot_all_see_each_other(manager, store, monkeypatch, at):
    # Widen the gap between the overlap check and the insert
    find_overlapping = store.find_overlapping

    def slow_find_overlapping(*args, **kwargs):
        found = find_overlapping(*args, **kwargs)
        time.sleep(0.02)
        return found

    monkeypatch.setattr(store, "find_overlapping", slow_find_overlapping)

    n = 6
    start_together = threading.Barrier(n)
    created = []
    errors = []

    def book(i):
        start_together.wait()
        try:
            created.append(manager.create("v1", at(10), at(11), f"Trip {i}", requester_id=f"u{i}"))
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=book, args=(i,)) for i in range(n)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    statuses = [store.get_reservation(r.id).status for r in created]
    assert statuses.count(ReservationStatus.CONFIRMED) == 1
    assert statuses.count(ReservationStatus.PENDING_CONFLICT) == n - 1

    # Equal priority: every later booking loses to each one already there
    conflicts = store.list_pending_conflicts()
    assert len(conflicts) == n * (n - 1) // 2
    losers = {c.losing_reservation_id for c in conflicts}
    [confirmed] = [r for r in created if store.get_reservation(r.id).status == ReservationStatus.CONFIRMED]
    assert confirmed.id not in losers
    assert losers == {r.id for r in created} - {confirmed.id}
    assert sum(c.winning_reservation_id == confirmed.id for c in conflicts) == n - 1
