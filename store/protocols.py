"""
Purpose: The persistence boundary of the booking engine.
What it does:
Declares one capability set per entity role. Components receive an object
satisfying the roles they need; the in-memory store and the Django ORM store
both satisfy all of them (EntityStore).

Conventions every implementation follows:
- reads return detached copies; mutating a returned record changes nothing
- missing ids read as None, never raise
- assign_dispatch / cancel_dispatch / resolve_conflict are conditional
  updates and report whether they applied
- vehicle candidates come back in vehicle-name order
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, ContextManager, Iterable, List, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from dispatch.models import Dispatch, DispatchStatus
    from fleet.models import Vehicle, VehicleWithStatus
    from reservations.models import ConflictStatus, Reservation, ReservationConflict, ReservationStatus


@runtime_checkable
class VehicleStore(Protocol):
    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]: ...
    def get_vehicle_by_driver(self, driver_id: str) -> Optional[Vehicle]: ...
    def list_vehicles(self) -> List[Vehicle]: ...
    def list_vehicles_with_status(self, now: datetime) -> List[VehicleWithStatus]: ...

    def find_available_vehicles(
        self,
        start: datetime,
        end: datetime,
        exclude_ids: Iterable[str] = (),
    ) -> List[str]:
        """
        Vehicle ids with a driver, not in maintenance, without an active trip
        and without a confirmed / pending_driver booking overlapping [start, end).
        """

    def vehicle_lock(self, vehicle_id: str) -> ContextManager[None]:
        """Serialises check-then-write sequences on one vehicle."""


@runtime_checkable
class ReservationStore(Protocol):
    def create_reservation(self, reservation: Reservation) -> Reservation: ...
    def get_reservation(self, reservation_id: str) -> Optional[Reservation]: ...
    def update_reservation(self, reservation: Reservation) -> None:
        """Persists vehicle, window, purpose, destinations and notes."""
    def update_reservation_status(self, reservation_id: str, status: ReservationStatus) -> None: ...
    def update_reservation_vehicle(self, reservation_id: str, vehicle_id: str) -> None:
        """Moves the booking and puts it back to pending_driver."""
    def cancel_reservation(self, reservation_id: str, cancelled_by: str, reason: str) -> None: ...
    def add_declined_vehicle(self, reservation_id: str, vehicle_id: str) -> None: ...

    def find_overlapping(
        self,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[Reservation]:
        """Bookings on the vehicle in confirmed / pending_conflict / pending_driver overlapping [start, end)."""

    def list_reservations(
        self,
        *,
        vehicle_id: Optional[str] = None,
        status: Optional[ReservationStatus] = None,
        from_time: Optional[datetime] = None,
        to_time: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Reservation]:
        """Ordered by start time; from_time / to_time keep bookings overlapping [from_time, to_time)."""

    def find_pending_for_driver(self, driver_id: str) -> List[Reservation]: ...
    def find_confirmed_starting_between(self, start: datetime, end: datetime) -> List[Reservation]: ...
    def complete_expired(self, now: datetime) -> int: ...


@runtime_checkable
class ConflictStore(Protocol):
    def create_conflict(self, winning_id: str, losing_id: str) -> ReservationConflict: ...
    def get_conflict(self, conflict_id: str) -> Optional[ReservationConflict]: ...
    def list_pending_conflicts(self) -> List[ReservationConflict]: ...

    def resolve_conflict(
        self,
        conflict_id: str,
        resolved_by: str,
        reason: str,
        status: ConflictStatus,
        resolved_at: datetime,
    ) -> bool:
        """Applies only while the conflict is still pending."""


@runtime_checkable
class DispatchStore(Protocol):
    def create_dispatch(self, dispatch: Dispatch) -> Dispatch: ...
    def get_dispatch(self, dispatch_id: str) -> Optional[Dispatch]: ...
    def list_dispatches(
        self,
        *,
        status: Optional[DispatchStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dispatch]: ...

    def assign_dispatch(self, dispatch_id: str, vehicle_id: str, dispatcher_id: str, at: datetime) -> bool:
        """Applies only while the dispatch is still pending."""
    def update_dispatch_status(self, dispatch_id: str, status: DispatchStatus, at: datetime) -> None: ...
    def cancel_dispatch(self, dispatch_id: str, reason: str, at: datetime) -> bool:
        """Applies only while the dispatch is not completed or cancelled."""

    def get_active_dispatch_for_vehicle(self, vehicle_id: str) -> Optional[Dispatch]: ...
    def get_active_dispatch_for_driver(self, driver_id: str) -> Optional[Dispatch]: ...


@runtime_checkable
class EntityStore(VehicleStore, ReservationStore, ConflictStore, DispatchStore, Protocol):
    def atomic(self) -> ContextManager[None]:
        """Groups several writes so they commit or fail together."""
