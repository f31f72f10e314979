"""
Purpose: Domain models for the Reservations capability.
What it does:
- Defines core data structures:
- TimeWindow (half-open [start, end) with the overlap rule)
- Reservation (vehicle, requester, window, priority, status, declined vehicles)
- ReservationConflict (winning / losing reservation pair + resolution)
- DeclinedVehicles (ordered, duplicate-free exclusion set for reassignment)

Defines enums/constants:
- ReservationStatus = confirmed | pending_conflict | pending_driver | driver_declined | cancelled | completed
- ConflictStatus = pending | resolved_reassign | resolved_changed | resolved_cancelled | force_assigned

Rule: No store access, no notifications. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple
import uuid

from common.clock import utc_now
from common.errors import ValidationError

LatLon = Tuple[float, float]


class ReservationStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING_CONFLICT = "pending_conflict"
    PENDING_DRIVER = "pending_driver"
    DRIVER_DECLINED = "driver_declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that still hold a claim on the vehicle for overlap detection
BLOCKING_STATUSES = frozenset({
    ReservationStatus.CONFIRMED,
    ReservationStatus.PENDING_CONFLICT,
    ReservationStatus.PENDING_DRIVER,
})

# Statuses that make a vehicle unavailable for automatic selection.
# pending_conflict bookings do not block automatic selection.
OCCUPYING_STATUSES = frozenset({
    ReservationStatus.CONFIRMED,
    ReservationStatus.PENDING_DRIVER,
})


class ConflictStatus(str, Enum):
    PENDING = "pending"
    RESOLVED_REASSIGN = "resolved_reassign"
    RESOLVED_CHANGED = "resolved_changed"
    RESOLVED_CANCELLED = "resolved_cancelled"
    FORCE_ASSIGNED = "force_assigned"


def windows_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """
    Half-open intervals overlap iff max(starts) < min(ends).
    Back-to-back bookings (end_a == start_b) do not overlap.
    """
    return max(start_a, start_b) < min(end_a, end_b)


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() is not None


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def overlaps(self, other: TimeWindow) -> bool:
        return windows_overlap(self.start, self.end, other.start, other.end)

    def validate(self, now: Optional[datetime] = None) -> None:
        """
        Both ends must carry a UTC offset and end must be strictly after start;
        when `now` is given, start must not be in the past.
        """
        if not (_is_aware(self.start) and _is_aware(self.end)):
            raise ValidationError("start_time and end_time must include a timezone", code="INVALID_TIME_RANGE")

        if self.end <= self.start:
            raise ValidationError("end_time must be after start_time", code="INVALID_TIME_RANGE")

        if now is not None and self.start < now:
            raise ValidationError("cannot create reservation in the past", code="PAST_TIME")


class DeclinedVehicles:
    """
    Vehicles that already declined a reservation, in decline order, without duplicates.

    The reassignment cascade never offers a booking to a member of this set,
    and the set only grows, so the candidate pool shrinks on every decline.
    """

    __slots__ = ("_ids",)

    def __init__(self, vehicle_ids: Iterable[str] = ()):
        self._ids: Dict[str, None] = dict.fromkeys(vehicle_ids)

    def add(self, vehicle_id: str) -> bool:
        """Record a decline; returns False if the vehicle had already declined."""
        if vehicle_id in self._ids:
            return False
        self._ids[vehicle_id] = None
        return True

    def exclusion_set(self, current_vehicle_id: Optional[str] = None) -> FrozenSet[str]:
        excluded = set(self._ids)
        if current_vehicle_id:
            excluded.add(current_vehicle_id)
        return frozenset(excluded)

    def as_list(self) -> List[str]:
        return list(self._ids)

    def __contains__(self, vehicle_id: object) -> bool:
        return vehicle_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DeclinedVehicles):
            return self.as_list() == other.as_list()
        if isinstance(other, (list, tuple)):
            return self.as_list() == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"DeclinedVehicles({self.as_list()!r})"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Reservation:
    """
    A trip bound to a future [start, end) window on one vehicle.
    """
    id: str
    vehicle_id: str
    requester_id: str
    start_time: datetime
    end_time: datetime
    purpose: str

    # Higher preempts lower when two bookings overlap on the same vehicle
    priority_level: int = 0
    status: ReservationStatus = ReservationStatus.CONFIRMED

    destinations: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    passenger_name: Optional[str] = None
    pickup_address: Optional[str] = None
    pickup_location: Optional[LatLon] = None

    declined_vehicles: DeclinedVehicles = field(default_factory=DeclinedVehicles)
    cancel_reason: Optional[str] = None
    cancelled_by: Optional[str] = None

    created_at: datetime = field(default_factory=utc_now)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return windows_overlap(self.start_time, self.end_time, start, end)

    def to_dict(self) -> dict:
        """JSON-friendly snapshot, used for audit before/after states and API output."""
        return {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "requester_id": self.requester_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "purpose": self.purpose,
            "priority_level": self.priority_level,
            "status": self.status.value,
            "destinations": list(self.destinations),
            "notes": self.notes,
            "passenger_name": self.passenger_name,
            "pickup_address": self.pickup_address,
            "pickup_location": list(self.pickup_location) if self.pickup_location else None,
            "declined_vehicle_ids": self.declined_vehicles.as_list(),
            "cancel_reason": self.cancel_reason,
            "cancelled_by": self.cancelled_by,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ReservationConflict:
    """
    Two distinct reservations that overlapped on the same vehicle when the later one was booked.
    Immutable once its status leaves `pending`.
    """
    id: str
    winning_reservation_id: str
    losing_reservation_id: str
    status: ConflictStatus = ConflictStatus.PENDING

    resolved_by: Optional[str] = None
    resolution_reason: Optional[str] = None
    resolved_at: Optional[datetime] = None

    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_pending(self) -> bool:
        return self.status == ConflictStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "winning_reservation_id": self.winning_reservation_id,
            "losing_reservation_id": self.losing_reservation_id,
            "status": self.status.value,
            "resolved_by": self.resolved_by,
            "resolution_reason": self.resolution_reason,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ReservationUpdate:
    """
    Partial edit of a reservation. Only fields that are not None are applied.
    """
    vehicle_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    purpose: Optional[str] = None
    destinations: Optional[List[str]] = None
    notes: Optional[str] = None

    def apply_to(self, reservation: Reservation) -> Reservation:
        if self.vehicle_id is not None:
            reservation.vehicle_id = self.vehicle_id
        if self.start_time is not None:
            reservation.start_time = self.start_time
        if self.end_time is not None:
            reservation.end_time = self.end_time
        if self.purpose is not None:
            reservation.purpose = self.purpose
        if self.destinations is not None:
            reservation.destinations = list(self.destinations)
        if self.notes is not None:
            reservation.notes = self.notes
        return reservation
