"""
Purpose: Domain models for immediate trips and the unified booking entry point.
What it does:
- Dispatch (an un-scheduled trip moving through the dispatch state machine)
- DispatchRequest / QuickBoardRequest (inputs for creating trips)
- BookingRequest / BookingResult (inputs and outputs of the booking orchestrator)

Defines enums/constants:
- DispatchStatus = pending | assigned | accepted | en_route | arrived | completed | cancelled
- BookingMode = specific | any

Rule: No store access. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from common.clock import utc_now
from reservations.models import Reservation, TimeWindow

LatLon = Tuple[float, float]


class DispatchStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    EN_ROUTE = "en_route"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# A vehicle with a dispatch in one of these is "in trip"
ACTIVE_DISPATCH_STATUSES = frozenset({
    DispatchStatus.ASSIGNED,
    DispatchStatus.ACCEPTED,
    DispatchStatus.EN_ROUTE,
    DispatchStatus.ARRIVED,
})

TERMINAL_DISPATCH_STATUSES = frozenset({
    DispatchStatus.COMPLETED,
    DispatchStatus.CANCELLED,
})


class BookingMode(str, Enum):
    SPECIFIC = "specific"
    ANY = "any"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Dispatch:
    """
    An immediate trip. Never deleted; completed and cancelled are terminal.
    """
    id: str
    requester_id: str
    purpose: str
    pickup_address: str
    status: DispatchStatus = DispatchStatus.PENDING

    vehicle_id: Optional[str] = None
    dispatcher_id: Optional[str] = None

    passenger_name: Optional[str] = None
    passenger_count: int = 1
    notes: Optional[str] = None

    pickup_location: Optional[LatLon] = None
    dropoff_address: Optional[str] = None
    dropoff_location: Optional[LatLon] = None
    estimated_end_at: Optional[datetime] = None

    # One timestamp per transition
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    en_route_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_DISPATCH_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_DISPATCH_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "purpose": self.purpose,
            "pickup_address": self.pickup_address,
            "status": self.status.value,
            "vehicle_id": self.vehicle_id,
            "dispatcher_id": self.dispatcher_id,
            "passenger_name": self.passenger_name,
            "passenger_count": self.passenger_count,
            "notes": self.notes,
            "pickup_location": list(self.pickup_location) if self.pickup_location else None,
            "dropoff_address": self.dropoff_address,
            "dropoff_location": list(self.dropoff_location) if self.dropoff_location else None,
            "estimated_end_at": _iso(self.estimated_end_at),
            "assigned_at": _iso(self.assigned_at),
            "accepted_at": _iso(self.accepted_at),
            "en_route_at": _iso(self.en_route_at),
            "arrived_at": _iso(self.arrived_at),
            "completed_at": _iso(self.completed_at),
            "cancelled_at": _iso(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class DispatchRequest:
    purpose: str
    pickup_address: str
    passenger_name: Optional[str] = None
    passenger_count: int = 1
    notes: Optional[str] = None
    pickup_location: Optional[LatLon] = None
    dropoff_address: Optional[str] = None
    dropoff_location: Optional[LatLon] = None


@dataclass(frozen=True)
class QuickBoardRequest:
    """
    Walk-up boarding: the passenger is already at the vehicle.
    Empty purpose and non-positive passenger counts fall back to policy defaults.
    """
    vehicle_id: str
    passenger_name: str
    passenger_count: int = 0
    purpose: str = ""
    notes: Optional[str] = None
    estimated_minutes: int = 0


@dataclass(frozen=True)
class BookingRequest:
    mode: BookingMode
    is_now: bool
    purpose: str
    pickup_address: str

    vehicle_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    pickup_location: Optional[LatLon] = None
    destinations: List[str] = field(default_factory=list)
    passenger_name: Optional[str] = None
    notes: Optional[str] = None

    @property
    def window(self) -> Optional[TimeWindow]:
        if self.start_time is None or self.end_time is None:
            return None
        return TimeWindow(self.start_time, self.end_time)


@dataclass(frozen=True)
class BookingResult:
    """
    Exactly one of `dispatch` / `reservation` is set, matching `kind`.
    """
    kind: str
    dispatch: Optional[Dispatch] = None
    reservation: Optional[Reservation] = None

    @classmethod
    def for_dispatch(cls, dispatch: Dispatch) -> BookingResult:
        return cls(kind="dispatch", dispatch=dispatch)

    @classmethod
    def for_reservation(cls, reservation: Reservation) -> BookingResult:
        return cls(kind="reservation", reservation=reservation)

    def to_dict(self) -> dict:
        payload = {"type": self.kind}
        if self.dispatch is not None:
            payload["dispatch"] = self.dispatch.to_dict()
        if self.reservation is not None:
            payload["reservation"] = self.reservation.to_dict()
        return payload
