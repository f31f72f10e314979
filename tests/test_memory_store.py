import threading

from dispatch.models import Dispatch, DispatchStatus
from fleet.models import VehicleStatus
from reservations.models import ConflictStatus, Reservation, ReservationStatus, new_id


def reservation(vehicle_id, start, end, status=ReservationStatus.CONFIRMED, **kwargs):
    return Reservation(
        id=new_id(),
        vehicle_id=vehicle_id,
        requester_id=kwargs.pop("requester_id", "u1"),
        start_time=start,
        end_time=end,
        purpose=kwargs.pop("purpose", "Trip"),
        status=status,
        **kwargs,
    )


def test_records_are_copied(store, at):
    created = store.create_reservation(reservation("v1", at(10), at(11)))
    created.purpose = "mutated"
    created.declined_vehicles.add("v9")

    stored = store.get_reservation(created.id)
    assert stored.purpose == "Trip"
    assert len(stored.declined_vehicles) == 0


def test_availability_excludes_ineligible_and_busy(store, at):
    assert store.find_available_vehicles(at(10), at(11)) == ["v1", "v2", "v3"]

    store.create_reservation(reservation("v1", at(10), at(11), ReservationStatus.PENDING_DRIVER))
    store.create_reservation(reservation("v2", at(9), at(10)))
    assert store.find_available_vehicles(at(10), at(11)) == ["v2", "v3"]
    assert store.find_available_vehicles(at(10), at(11), {"v3"}) == ["v2"]


def test_pending_conflict_does_not_occupy_but_blocks(store, at):
    store.create_reservation(reservation("v1", at(10), at(11), ReservationStatus.PENDING_CONFLICT))

    assert "v1" in store.find_available_vehicles(at(10), at(11))
    assert len(store.find_overlapping("v1", at(10, 30), at(12))) == 1


def test_active_dispatch_blocks_every_window(store, clock, at):
    store.create_dispatch(Dispatch(id="t1", requester_id="u1", purpose="Now", pickup_address="HQ"))
    assert store.assign_dispatch("t1", "v2", "disp1", clock())

    assert "v2" not in store.find_available_vehicles(at(20), at(21))
    statuses = {v.id: v.status for v in store.list_vehicles_with_status(clock())}
    assert statuses == {
        "v1": VehicleStatus.AVAILABLE,
        "v2": VehicleStatus.IN_TRIP,
        "v3": VehicleStatus.STALE_LOCATION,
        "v4": VehicleStatus.STALE_LOCATION,
        "v5": VehicleStatus.MAINTENANCE,
    }


def test_current_confirmed_reservation_means_reserved(store, clock, at):
    store.create_reservation(reservation("v1", at(7, 30), at(9)))
    store.create_reservation(reservation("v2", at(7, 30), at(9), ReservationStatus.PENDING_DRIVER))

    statuses = {v.id: v.status for v in store.list_vehicles_with_status(clock())}
    assert statuses["v1"] == VehicleStatus.RESERVED
    assert statuses["v2"] == VehicleStatus.AVAILABLE


def test_conditional_updates_report_a_lost_race(store, clock, at):
    store.create_dispatch(Dispatch(id="t1", requester_id="u1", purpose="Now", pickup_address="HQ"))
    assert store.assign_dispatch("t1", "v1", "disp1", clock())
    assert not store.assign_dispatch("t1", "v2", "disp2", clock())
    assert store.get_dispatch("t1").vehicle_id == "v1"

    store.update_dispatch_status("t1", DispatchStatus.COMPLETED, clock())
    assert not store.cancel_dispatch("t1", "late", clock())

    a = store.create_reservation(reservation("v1", at(10), at(11)))
    b = store.create_reservation(reservation("v1", at(10), at(11)))
    conflict = store.create_conflict(a.id, b.id)
    assert store.resolve_conflict(conflict.id, "admin", "", ConflictStatus.RESOLVED_CANCELLED, clock())
    assert not store.resolve_conflict(conflict.id, "admin2", "", ConflictStatus.FORCE_ASSIGNED, clock())
    assert store.get_conflict(conflict.id).resolved_by == "admin"


def test_reassignment_resets_to_pending_driver(store, at):
    r = store.create_reservation(reservation("v1", at(10), at(11), ReservationStatus.PENDING_DRIVER))
    store.add_declined_vehicle(r.id, "v1")
    store.add_declined_vehicle(r.id, "v1")
    store.update_reservation_vehicle(r.id, "v2")

    moved = store.get_reservation(r.id)
    assert moved.vehicle_id == "v2"
    assert moved.status == ReservationStatus.PENDING_DRIVER
    assert moved.declined_vehicles == ["v1"]


def test_vehicle_lock_serialises_check_then_write(store, at):
    placed = []

    def book(requester_id):
        with store.vehicle_lock("v1"):
            if not store.find_overlapping("v1", at(10), at(11)):
                placed.append(store.create_reservation(reservation("v1", at(10), at(11), requester_id=requester_id)))

    threads = [threading.Thread(target=book, args=(f"u{i}",)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(placed) == 1


def test_driver_lookups(store):
    assert store.get_vehicle_by_driver("d2").id == "v2"
    assert store.get_vehicle_by_driver("nobody") is None
    assert store.find_pending_for_driver("nobody") == []
    assert store.get_active_dispatch_for_driver("nobody") is None
