import logging
import os
import random
from datetime import timedelta
from typing import List

import pandas as pd

from common.clock import utc_now
from common.errors import ResourceUnavailable
from dispatch.booking import BookingOrchestrator
from dispatch.models import BookingMode, BookingRequest, DispatchStatus, QuickBoardRequest
from fleet.models import Vehicle, VehicleStatus
from notifications.audit import InMemoryAuditLog
from notifications.side_effects import SideEffects
from reservations.conflicts import ConflictResolver
from reservations.models import ReservationStatus
from routing.eta_service import ETAEstimator
from store.memory import InMemoryEntityStore


def load_fleet(filepath="mock_fleet.csv") -> List[Vehicle]:
    # Resolve the path relative to the repo root, wherever the script runs from.
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    absolute_path = os.path.join(base_dir, filepath)

    if not os.path.exists(absolute_path):
        from scripts.generate_mock_fleet import generate_mock_fleet
        generate_mock_fleet(output_file=absolute_path, seed=7)

    df = pd.read_csv(absolute_path, dtype={"driver_id": str}, parse_dates=["location_at"])

    vehicles = []
    for row in df.itertuples(index=False):
        has_fix = not pd.isna(row.lat)
        vehicles.append(
            Vehicle.new(
                row.vehicle_id,
                row.name,
                driver_id=row.driver_id if isinstance(row.driver_id, str) and row.driver_id else None,
                license_plate=row.license_plate,
                is_maintenance=bool(row.is_maintenance),
                lat=float(row.lat) if has_fix else None,
                lon=float(row.lon) if has_fix else None,
                location_at=row.location_at.to_pydatetime() if has_fix else None,
            )
        )
    return vehicles


def run_simulation(num_bookings=20, decline_probability=0.3, seed=7):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    random.seed(seed)

    print("=== STARTING BOOKING SIMULATION ===")

    # 1. Load the fleet into an in-memory store
    store = InMemoryEntityStore()
    vehicles = load_fleet()
    for vehicle in vehicles:
        store.add_vehicle(vehicle)
    print(f"Loaded {len(vehicles)} vehicles.\n")

    audit_log = InMemoryAuditLog()
    side_effects = SideEffects(audit_log=audit_log)
    bookings = BookingOrchestrator(store, side_effects=side_effects)
    conflicts = ConflictResolver(store, side_effects=side_effects)

    # 2. Future bookings in "any" mode; drivers decline at random
    print("--- Future bookings (any vehicle) ---")
    base = utc_now().replace(minute=0, second=0, microsecond=0) + timedelta(hours=2)
    outcomes = {"confirmed": 0, "driver_declined": 0, "unavailable": 0}

    for i in range(num_bookings):
        start = base + timedelta(minutes=30 * random.randint(0, 8))
        request = BookingRequest(
            mode=BookingMode.ANY,
            is_now=False,
            purpose=f"Client visit {i+1}",
            pickup_address="HQ lobby",
            start_time=start,
            end_time=start + timedelta(hours=1),
            destinations=["Makati Ave", "BGC"],
        )
        try:
            reservation = bookings.create_booking(request, requester_id=f"EMP-{i+1:03d}").reservation
        except ResourceUnavailable as exc:
            outcomes["unavailable"] += 1
            print(f"[NO VEHICLE] Booking {i+1} -> {exc}")
            continue

        # Offer until somebody accepts or every free vehicle has declined
        while reservation.status == ReservationStatus.PENDING_DRIVER:
            driver_id = store.get_vehicle(reservation.vehicle_id).driver_id
            if random.random() < decline_probability:
                reservation = bookings.driver_decline(reservation.id, driver_id, "busy")
            else:
                reservation = bookings.driver_accept(reservation.id, driver_id)

        outcomes[reservation.status.value] += 1
        print(
            f"Booking {i+1} {start:%H:%M} -> {reservation.status.value} on {reservation.vehicle_id} "
            f"(declined by {len(reservation.declined_vehicles)})"
        )

    # 3. Priority conflict on one vehicle, resolved by reassignment
    print("\n--- Priority conflict ---")
    target = next(v for v in vehicles if not v.is_maintenance)
    slot = base + timedelta(days=1)
    low = bookings.reservations.create(target.id, slot, slot + timedelta(hours=2), "Team offsite", requester_id="EMP-900")
    high = bookings.reservations.create(
        target.id, slot + timedelta(hours=1), slot + timedelta(hours=3), "Board meeting",
        requester_id="EMP-901", priority_level=5,
    )
    pending = conflicts.list_pending()
    print(f"{low.id[:8]} vs {high.id[:8]}: {len(pending)} pending conflict(s)")

    spare = store.find_available_vehicles(low.start_time, low.end_time, {target.id})
    if pending and spare:
        resolved = conflicts.resolve_reassign(pending[0].id, spare[0], "ADMIN-1", "moved to spare vehicle")
        print(f"Conflict {resolved.id[:8]} -> {resolved.status.value}; loser moved to {spare[0]}")

    # 4. Walk-up passenger on the first idle vehicle
    print("\n--- Quick board ---")
    idle = next(v for v in store.list_vehicles_with_status(utc_now()) if v.status == VehicleStatus.AVAILABLE)
    trip = bookings.dispatches.quick_board(
        QuickBoardRequest(vehicle_id=idle.id, passenger_name="Walk-in guest", estimated_minutes=20),
        dispatcher_id="DISP-1",
    )
    print(f"Dispatch {trip.id[:8]} on {idle.id} -> {trip.status.value}")
    bookings.dispatches.update_status(trip.id, DispatchStatus.ARRIVED, "DISP-1")
    trip = bookings.dispatches.update_status(trip.id, DispatchStatus.COMPLETED, "DISP-1")
    print(f"Dispatch {trip.id[:8]} -> {trip.status.value}")

    # 5. ETA board for a pickup near the centre
    print("\n--- ETA board (top 5) ---")
    eta = ETAEstimator(store, rng=random.Random(seed))
    for estimate in eta.estimate((14.5547, 121.0244))[:5]:
        fallback = " (approx. position)" if estimate.position_is_fallback else ""
        print(f"  {estimate.vehicle_name}: {estimate.duration_sec // 60} min, {estimate.distance_m} m{fallback}")

    print("\n=== SIMULATION COMPLETE ===")
    print(f"Confirmed: {outcomes['confirmed']} / {num_bookings}")
    print(f"Declined by every driver: {outcomes['driver_declined']}")
    print(f"No vehicle available: {outcomes['unavailable']}")
    print(f"Audit entries written: {len(audit_log.entries)}")


if __name__ == "__main__":
    run_simulation()
