"""
Purpose: Core data models for the fleet domain.
What it does:
Defines the structure of a Vehicle and its derived status without relying on Django ORM constraints.
Fleet administration owns these records; the booking engine only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

LatLon = Tuple[float, float]


class VehicleStatus(str, Enum):
    """
    Status derived from the vehicle record plus its trips and bookings.
    Precedence (first match wins): maintenance, in_trip, reserved, stale_location, available.
    """
    AVAILABLE = "available"
    RESERVED = "reserved"
    IN_TRIP = "in_trip"
    MAINTENANCE = "maintenance"
    STALE_LOCATION = "stale_location"


@dataclass(frozen=True)
class Vehicle:
    """
    A stateless snapshot of a fleet vehicle.
    """
    id: str
    name: str
    license_plate: str = ""
    driver_id: Optional[str] = None
    is_maintenance: bool = False

    # Last GPS fix, if the driver app has reported one
    location: Optional[LatLon] = None
    location_at: Optional[datetime] = None

    @classmethod
    def new(
        cls,
        vehicle_id: str,
        name: str,
        *,
        driver_id: Optional[str] = None,
        license_plate: str = "",
        is_maintenance: bool = False,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        location_at: Optional[datetime] = None,
    ) -> Vehicle:
        location = (lat, lon) if lat is not None and lon is not None else None
        return cls(
            id=vehicle_id,
            name=name,
            license_plate=license_plate,
            driver_id=driver_id,
            is_maintenance=is_maintenance,
            location=location,
            location_at=location_at,
        )


@dataclass(frozen=True)
class VehicleWithStatus:
    vehicle: Vehicle
    status: VehicleStatus

    @property
    def id(self) -> str:
        return self.vehicle.id

    @property
    def name(self) -> str:
        return self.vehicle.name

    def to_dict(self) -> dict:
        vehicle = self.vehicle
        return {
            "id": vehicle.id,
            "name": vehicle.name,
            "license_plate": vehicle.license_plate,
            "driver_id": vehicle.driver_id,
            "is_maintenance": vehicle.is_maintenance,
            "latitude": vehicle.location[0] if vehicle.location else None,
            "longitude": vehicle.location[1] if vehicle.location else None,
            "location_at": vehicle.location_at.isoformat() if vehicle.location_at else None,
            "status": self.status.value,
        }
