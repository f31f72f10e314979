"""
Purpose: Hard eligibility rules for picking a vehicle.
What it does:
Derives a vehicle's live status and filters/orders the candidate pool used
for "any vehicle" bookings and the decline reassignment cascade.
Stores that cannot push these rules into a query call these functions.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .models import Vehicle, VehicleStatus
from .policy import FleetPolicy, default_fleet_policy


def has_fresh_location(vehicle: Vehicle, now: datetime, policy: Optional[FleetPolicy] = None) -> bool:
    """
    True when the vehicle reported a position within the stale threshold.
    """
    policy = policy or default_fleet_policy()

    if vehicle.location is None or vehicle.location_at is None:
        return False

    return now - vehicle.location_at <= timedelta(seconds=policy.location_stale_seconds)


def derive_vehicle_status(
    vehicle: Vehicle,
    *,
    now: datetime,
    has_active_dispatch: bool,
    has_current_reservation: bool,
    policy: Optional[FleetPolicy] = None,
) -> VehicleStatus:
    if vehicle.is_maintenance:
        return VehicleStatus.MAINTENANCE
    if has_active_dispatch:
        return VehicleStatus.IN_TRIP
    if has_current_reservation:
        return VehicleStatus.RESERVED
    if not has_fresh_location(vehicle, now, policy):
        return VehicleStatus.STALE_LOCATION
    return VehicleStatus.AVAILABLE


def filter_candidate_vehicles(
    vehicles: Iterable[Vehicle],
    *,
    busy_vehicle_ids: Iterable[str],
    exclude_ids: Iterable[str] = (),
) -> List[Vehicle]:
    """
    Returns vehicles that could take a booking, in name order.

    A candidate has a driver, is not in maintenance, is not excluded by the
    caller, and is not busy (overlapping booking or active trip).
    """
    blocked = set(busy_vehicle_ids) | set(exclude_ids)
    candidates = []

    for vehicle in vehicles:
        if vehicle.is_maintenance:
            continue

        if not vehicle.driver_id:
            continue

        if vehicle.id in blocked:
            continue

        candidates.append(vehicle)

    # Name order is the deterministic tie-break every store must honour
    candidates.sort(key=lambda vehicle: (vehicle.name, vehicle.id))
    return candidates
