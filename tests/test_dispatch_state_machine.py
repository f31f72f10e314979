from datetime import timedelta

import pytest

from common.errors import InvalidState, NotFound, ValidationError, VehicleBusy
from dispatch.lifecycle import DispatchStateMachine
from dispatch.models import DispatchRequest, DispatchStatus, QuickBoardRequest
from fleet.models import VehicleStatus


@pytest.fixture
def machine(store, side_effects, clock):
    return DispatchStateMachine(store, side_effects=side_effects, clock=clock)


@pytest.fixture
def pending(machine):
    return machine.create(DispatchRequest(purpose="Airport run", pickup_address="HQ lobby"), "u1")


def test_create_is_pending_and_alerts_dispatchers(machine, pending, notifier, audit_log):
    assert pending.status == DispatchStatus.PENDING
    assert pending.vehicle_id is None
    assert pending.passenger_count == 1

    assert notifier.sent == [
        ("role", ("admin", "dispatcher"), "New Dispatch", {"type": "dispatch_created", "dispatch_id": pending.id}),
    ]
    assert audit_log.actions() == ["dispatch.create"]


def test_full_lifecycle_stamps_each_step(machine, pending, clock):
    assigned = machine.assign(pending.id, "v1", "disp1")
    assert assigned.status == DispatchStatus.ASSIGNED
    assert assigned.dispatcher_id == "disp1"
    assert assigned.assigned_at == clock()

    for status, stamp in [
        (DispatchStatus.ACCEPTED, "accepted_at"),
        (DispatchStatus.EN_ROUTE, "en_route_at"),
        (DispatchStatus.ARRIVED, "arrived_at"),
        (DispatchStatus.COMPLETED, "completed_at"),
    ]:
        clock.advance(minutes=5)
        trip = machine.update_status(pending.id, status, "d1")
        assert trip.status == status
        assert getattr(trip, stamp) == clock()


def test_assign_notifies_driver(machine, pending, notifier):
    machine.assign(pending.id, "v1", "disp1")

    assert notifier.sent[-1] == (
        "vehicle_driver", "v1", "Trip Assigned", {"type": "dispatch_assigned", "dispatch_id": pending.id},
    )


def test_assign_requires_pending(machine, pending):
    machine.assign(pending.id, "v1", "disp1")

    with pytest.raises(InvalidState):
        machine.assign(pending.id, "v2", "disp2")

    assert machine.get(pending.id).vehicle_id == "v1"


def test_assign_unknown_vehicle_or_dispatch(machine, pending):
    with pytest.raises(NotFound):
        machine.assign(pending.id, "nope", "disp1")
    assert machine.get(pending.id).status == DispatchStatus.PENDING

    with pytest.raises(NotFound):
        machine.assign("missing", "v1", "disp1")


def test_update_status_rejects_non_progress_values(machine, pending):
    for status in (DispatchStatus.PENDING, DispatchStatus.ASSIGNED, DispatchStatus.CANCELLED):
        with pytest.raises(ValidationError) as excinfo:
            machine.update_status(pending.id, status, "d1")
        assert excinfo.value.code == "INVALID_STATUS_VALUE"


def test_progress_steps_may_be_skipped(machine, pending, clock):
    machine.assign(pending.id, "v1", "disp1")

    arrived = machine.update_status(pending.id, DispatchStatus.ARRIVED, "d1")

    assert arrived.status == DispatchStatus.ARRIVED
    assert arrived.arrived_at == clock()
    assert arrived.accepted_at is None and arrived.en_route_at is None


def test_finished_trip_cannot_move(machine, pending):
    machine.assign(pending.id, "v1", "disp1")
    machine.update_status(pending.id, DispatchStatus.COMPLETED, "d1")

    with pytest.raises(InvalidState):
        machine.update_status(pending.id, DispatchStatus.ARRIVED, "d1")


def test_cancel_from_any_unfinished_state(machine, pending, clock, audit_log):
    cancelled = machine.cancel(pending.id, "passenger no-show", "disp1")

    assert cancelled.status == DispatchStatus.CANCELLED
    assert cancelled.cancel_reason == "passenger no-show"
    assert cancelled.cancelled_at == clock()
    assert audit_log.entries[-1].action == "dispatch.cancel"


def test_cancel_after_completed_is_rejected(machine, pending):
    machine.assign(pending.id, "v1", "disp1")
    machine.update_status(pending.id, DispatchStatus.COMPLETED, "d1")

    with pytest.raises(InvalidState):
        machine.cancel(pending.id, "too late", "disp1")

    assert machine.get(pending.id).status == DispatchStatus.COMPLETED


def test_cancel_twice_is_rejected(machine, pending):
    machine.cancel(pending.id, "first", "disp1")

    with pytest.raises(InvalidState):
        machine.cancel(pending.id, "second", "disp1")
    assert machine.get(pending.id).cancel_reason == "first"


def test_quick_board_lands_en_route_in_one_call(machine, store, clock, audit_log, notifier):
    trip = machine.quick_board(QuickBoardRequest(vehicle_id="v3", passenger_name="Tanaka"), "disp1")

    assert trip.status == DispatchStatus.EN_ROUTE
    assert trip.vehicle_id == "v3"
    assert trip.assigned_at == trip.accepted_at == trip.en_route_at == clock()
    assert trip.purpose == "Boarding"
    assert trip.passenger_count == 1
    assert trip.estimated_end_at is None

    assert audit_log.actions() == ["dispatch.quick_board"]
    assert notifier.sent == []

    [v3] = [v for v in store.list_vehicles_with_status(clock()) if v.id == "v3"]
    assert v3.status == VehicleStatus.IN_TRIP


def test_quick_board_sets_estimated_end(machine, clock):
    trip = machine.quick_board(
        QuickBoardRequest(vehicle_id="v1", passenger_name="Tanaka", passenger_count=3, purpose="Site tour", estimated_minutes=45),
        "disp1",
    )

    assert trip.purpose == "Site tour"
    assert trip.passenger_count == 3
    assert trip.estimated_end_at == clock() + timedelta(minutes=45)


def test_quick_board_busy_vehicle(machine, pending):
    machine.assign(pending.id, "v1", "disp1")

    with pytest.raises(VehicleBusy):
        machine.quick_board(QuickBoardRequest(vehicle_id="v1", passenger_name="Tanaka"), "disp1")

    # Finished trips free the vehicle again
    machine.update_status(pending.id, DispatchStatus.COMPLETED, "d1")
    assert machine.quick_board(QuickBoardRequest(vehicle_id="v1", passenger_name="Tanaka"), "disp1").vehicle_id == "v1"


def test_quick_board_unknown_vehicle(machine):
    with pytest.raises(NotFound):
        machine.quick_board(QuickBoardRequest(vehicle_id="nope", passenger_name="Tanaka"), "disp1")


def test_current_trip_for_driver(machine, pending):
    assert machine.current_trip_for_driver("d1") is None

    machine.assign(pending.id, "v1", "disp1")
    assert machine.current_trip_for_driver("d1").id == pending.id
    assert machine.current_trip_for_driver("d2") is None

    machine.update_status(pending.id, DispatchStatus.COMPLETED, "d1")
    assert machine.current_trip_for_driver("d1") is None


def test_list_newest_first_with_status_filter(machine, clock):
    first = machine.create(DispatchRequest(purpose="A", pickup_address="HQ"), "u1")
    clock.advance(minutes=1)
    second = machine.create(DispatchRequest(purpose="B", pickup_address="HQ"), "u1")
    machine.cancel(first.id, "dup", "u1")

    assert [d.id for d in machine.list()] == [second.id, first.id]
    assert [d.id for d in machine.list(status=DispatchStatus.CANCELLED)] == [first.id]
    assert [d.id for d in machine.list(limit=1, offset=1)] == [first.id]
