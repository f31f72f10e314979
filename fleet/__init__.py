"""
Fleet domain package.

Public API:
- Domain models: Vehicle, VehicleStatus, VehicleWithStatus
- Eligibility rules: derive_vehicle_status, filter_candidate_vehicles
"""
from .models import LatLon, Vehicle, VehicleStatus, VehicleWithStatus
from .policy import FleetPolicy, default_fleet_policy
from .selection import derive_vehicle_status, filter_candidate_vehicles, has_fresh_location

__all__ = [
    "LatLon",
    "Vehicle",
    "VehicleStatus",
    "VehicleWithStatus",
    "FleetPolicy",
    "default_fleet_policy",
    "derive_vehicle_status",
    "filter_candidate_vehicles",
    "has_fresh_location",
]
