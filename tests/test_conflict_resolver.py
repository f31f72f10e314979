from datetime import datetime

import pytest

from common.errors import InvalidState, NotFound, ValidationError
from reservations.conflicts import ConflictResolver
from reservations.manager import ReservationManager
from reservations.models import ConflictStatus, ReservationStatus


@pytest.fixture
def manager(store, side_effects, clock):
    return ReservationManager(store, side_effects=side_effects, clock=clock)


@pytest.fixture
def resolver(store, side_effects, clock):
    return ConflictResolver(store, side_effects=side_effects, clock=clock)


@pytest.fixture
def preempted(manager, store, at):
    """A priority-5 booking landing on top of a confirmed priority-3 one on v1."""
    existing = manager.create("v1", at(10), at(11), "Board prep", requester_id="u1", priority_level=3)
    new = manager.create("v1", at(9, 30), at(10, 30), "CEO pickup", requester_id="u2", priority_level=5)
    [conflict] = store.list_pending_conflicts()
    return conflict, new, existing


def test_reassign_moves_loser_and_confirms_both(resolver, store, audit_log, preempted, clock):
    conflict, winner, loser = preempted

    resolved = resolver.resolve_reassign(conflict.id, "v2", "admin", "v2 is free")

    assert resolved.status == ConflictStatus.RESOLVED_REASSIGN
    assert resolved.resolved_by == "admin"
    assert resolved.resolution_reason == "v2 is free"
    assert resolved.resolved_at == clock()

    moved = store.get_reservation(loser.id)
    assert moved.vehicle_id == "v2"
    assert moved.status == ReservationStatus.CONFIRMED

    kept = store.get_reservation(winner.id)
    assert kept.vehicle_id == "v1"
    assert kept.status == ReservationStatus.CONFIRMED

    assert store.list_pending_conflicts() == []
    assert audit_log.actions()[-1] == "conflict.resolve_reassign"


def test_reassign_to_unknown_vehicle_leaves_conflict_pending(resolver, store, preempted):
    conflict, _, _ = preempted

    with pytest.raises(NotFound):
        resolver.resolve_reassign(conflict.id, "nope", "admin")

    assert store.get_conflict(conflict.id).is_pending


def test_change_time_moves_loser(resolver, store, preempted, at):
    conflict, winner, loser = preempted

    resolved = resolver.resolve_change_time(conflict.id, at(13), at(14), "admin")

    assert resolved.status == ConflictStatus.RESOLVED_CHANGED
    moved = store.get_reservation(loser.id)
    assert (moved.start_time, moved.end_time) == (at(13), at(14))
    assert moved.status == ReservationStatus.CONFIRMED
    assert store.get_reservation(winner.id).status == ReservationStatus.CONFIRMED


def test_change_time_rejects_inverted_window(resolver, preempted, at):
    conflict, _, _ = preempted

    with pytest.raises(ValidationError):
        resolver.resolve_change_time(conflict.id, at(14), at(13), "admin")


def test_change_time_rejects_times_without_timezone(resolver, store, preempted):
    conflict, _, loser = preempted

    with pytest.raises(ValidationError) as excinfo:
        resolver.resolve_change_time(conflict.id, datetime(2026, 1, 5, 13), datetime(2026, 1, 5, 14), "admin")

    assert excinfo.value.code == "INVALID_TIME_RANGE"
    assert store.get_conflict(conflict.id).status == ConflictStatus.PENDING
    assert store.get_reservation(loser.id).start_time == loser.start_time


def test_cancel_drops_loser(resolver, store, preempted):
    conflict, winner, loser = preempted

    resolved = resolver.resolve_cancel(conflict.id, "admin", "duplicate")

    assert resolved.status == ConflictStatus.RESOLVED_CANCELLED
    cancelled = store.get_reservation(loser.id)
    assert cancelled.status == ReservationStatus.CANCELLED
    assert cancelled.cancelled_by == "admin"
    assert store.get_reservation(winner.id).status == ReservationStatus.CONFIRMED


def test_force_assign_inverts_the_priority_outcome(resolver, store, audit_log, preempted):
    conflict, winner, loser = preempted

    resolved = resolver.force_assign(conflict.id, "admin", "standing contract")

    assert resolved.status == ConflictStatus.FORCE_ASSIGNED
    assert store.get_reservation(loser.id).status == ReservationStatus.CONFIRMED

    overridden = store.get_reservation(winner.id)
    assert overridden.status == ReservationStatus.CANCELLED
    assert overridden.cancel_reason == "force assigned: standing contract"
    assert audit_log.entries[-1].action == "conflict.force_assign"
    assert audit_log.entries[-1].reason == "standing contract"


@pytest.mark.parametrize("reason", ["", "   "])
def test_force_assign_requires_reason(resolver, store, preempted, reason):
    conflict, winner, _ = preempted

    with pytest.raises(ValidationError) as excinfo:
        resolver.force_assign(conflict.id, "admin", reason)

    assert excinfo.value.code == "REASON_REQUIRED"
    assert store.get_conflict(conflict.id).is_pending
    assert store.get_reservation(winner.id).status == ReservationStatus.PENDING_CONFLICT


def test_second_resolution_is_rejected(resolver, store, preempted):
    conflict, winner, loser = preempted
    resolver.resolve_cancel(conflict.id, "admin")

    with pytest.raises(InvalidState) as excinfo:
        resolver.force_assign(conflict.id, "other-admin", "late")

    assert excinfo.value.code == "ALREADY_RESOLVED"
    assert store.get_conflict(conflict.id).status == ConflictStatus.RESOLVED_CANCELLED
    assert store.get_reservation(winner.id).status == ReservationStatus.CONFIRMED


def test_losing_the_claim_writes_nothing(resolver, store, preempted, clock, monkeypatch):
    conflict, _, loser = preempted

    # Another admin resolves it between our read and our conditional update
    original = store.resolve_conflict

    def resolve_first(conflict_id, *args, **kwargs):
        original(conflict_id, "other-admin", "", ConflictStatus.RESOLVED_CANCELLED, clock())
        return original(conflict_id, *args, **kwargs)

    monkeypatch.setattr(store, "resolve_conflict", resolve_first)

    with pytest.raises(InvalidState) as excinfo:
        resolver.resolve_reassign(conflict.id, "v2", "admin")

    assert excinfo.value.code == "ALREADY_RESOLVED"
    assert store.get_reservation(loser.id).vehicle_id == "v1"


def test_unknown_conflict(resolver):
    with pytest.raises(NotFound):
        resolver.get("missing")
    with pytest.raises(NotFound):
        resolver.resolve_cancel("missing", "admin")


def test_list_pending_in_creation_order(manager, resolver, at, clock):
    manager.create("v1", at(10), at(11), "A", requester_id="u1")
    manager.create("v1", at(10), at(11), "B", requester_id="u1")
    clock.advance(seconds=1)
    manager.create("v2", at(10), at(11), "C", requester_id="u1")
    manager.create("v2", at(10), at(11), "D", requester_id="u1")

    pending = resolver.list_pending()
    assert len(pending) == 2
    assert pending[0].created_at < pending[1].created_at
