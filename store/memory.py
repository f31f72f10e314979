"""
Purpose: In-memory entity store.
What it does:
Holds vehicles, reservations, conflicts and dispatches in dicts and
implements every capability in store/protocols.py. Used by the test-suite,
the simulation script, and any single-process deployment.

Records are copied on the way in and on the way out, so callers can never
mutate stored state by accident. Conditional updates run under one store
lock; vehicle_lock adds a per-vehicle lock for check-then-write sequences.

Rule: No business decisions here. Eligibility comes from fleet.selection,
dispatch transitions from dispatch.state_machines.
"""

from __future__ import annotations

import copy
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional

from common.clock import Clock, utc_now
from dispatch.models import ACTIVE_DISPATCH_STATUSES, Dispatch, DispatchStatus
from dispatch.state_machines import apply_assignment, apply_cancellation, apply_status
from fleet.models import Vehicle, VehicleWithStatus
from fleet.policy import FleetPolicy, default_fleet_policy
from fleet.selection import derive_vehicle_status, filter_candidate_vehicles
from reservations.models import (
    BLOCKING_STATUSES,
    OCCUPYING_STATUSES,
    ConflictStatus,
    Reservation,
    ReservationConflict,
    ReservationStatus,
    new_id,
)


class InMemoryEntityStore:
    def __init__(self, *, clock: Clock = utc_now, fleet_policy: Optional[FleetPolicy] = None):
        self.clock = clock
        self.fleet_policy = fleet_policy or default_fleet_policy()

        self._vehicles: Dict[str, Vehicle] = {}
        self._reservations: Dict[str, Reservation] = {}
        self._conflicts: Dict[str, ReservationConflict] = {}
        self._dispatches: Dict[str, Dispatch] = {}

        # One store-wide lock makes every single call atomic; atomic() reuses it
        self._lock = threading.RLock()
        self._vehicle_locks: Dict[str, threading.RLock] = defaultdict(threading.RLock)

    # ------------------------------------------------------------------
    # Transactions / locking
    # ------------------------------------------------------------------
    @contextmanager
    def atomic(self) -> Iterator[None]:
        # No rollback: callers check every precondition before the first write
        with self._lock:
            yield

    @contextmanager
    def vehicle_lock(self, vehicle_id: str) -> Iterator[None]:
        with self._lock:
            lock = self._vehicle_locks[vehicle_id]
        with lock:
            yield

    # ------------------------------------------------------------------
    # Seeding (fleet administration owns vehicles; tests and scripts seed them)
    # ------------------------------------------------------------------
    def add_vehicle(self, vehicle: Vehicle) -> Vehicle:
        with self._lock:
            self._vehicles[vehicle.id] = vehicle
        return vehicle

    def set_vehicle_location(self, vehicle_id: str, lat: float, lon: float, at: Optional[datetime] = None) -> None:
        with self._lock:
            vehicle = self._vehicles[vehicle_id]
            self._vehicles[vehicle_id] = replace(vehicle, location=(lat, lon), location_at=at or self.clock())

    def set_vehicle_maintenance(self, vehicle_id: str, is_maintenance: bool) -> None:
        with self._lock:
            vehicle = self._vehicles[vehicle_id]
            self._vehicles[vehicle_id] = replace(vehicle, is_maintenance=is_maintenance)

    # ------------------------------------------------------------------
    # Vehicles
    # ------------------------------------------------------------------
    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return self._vehicles.get(vehicle_id)

    def get_vehicle_by_driver(self, driver_id: str) -> Optional[Vehicle]:
        for vehicle in self._vehicles.values():
            if vehicle.driver_id == driver_id:
                return vehicle
        return None

    def list_vehicles(self) -> List[Vehicle]:
        return sorted(self._vehicles.values(), key=lambda v: (v.name, v.id))

    def list_vehicles_with_status(self, now: datetime) -> List[VehicleWithStatus]:
        with self._lock:
            in_trip = {d.vehicle_id for d in self._dispatches.values() if d.status in ACTIVE_DISPATCH_STATUSES}
            reserved_now = {
                r.vehicle_id
                for r in self._reservations.values()
                if r.status == ReservationStatus.CONFIRMED and r.start_time <= now < r.end_time
            }

            return [
                VehicleWithStatus(
                    vehicle=vehicle,
                    status=derive_vehicle_status(
                        vehicle,
                        now=now,
                        has_active_dispatch=vehicle.id in in_trip,
                        has_current_reservation=vehicle.id in reserved_now,
                        policy=self.fleet_policy,
                    ),
                )
                for vehicle in self.list_vehicles()
            ]

    def find_available_vehicles(
        self,
        start: datetime,
        end: datetime,
        exclude_ids: Iterable[str] = (),
    ) -> List[str]:
        with self._lock:
            busy = {d.vehicle_id for d in self._dispatches.values() if d.status in ACTIVE_DISPATCH_STATUSES}
            busy.update(
                r.vehicle_id
                for r in self._reservations.values()
                if r.status in OCCUPYING_STATUSES and r.overlaps(start, end)
            )

            candidates = filter_candidate_vehicles(
                self._vehicles.values(),
                busy_vehicle_ids=busy,
                exclude_ids=exclude_ids,
            )
            return [vehicle.id for vehicle in candidates]

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------
    def create_reservation(self, reservation: Reservation) -> Reservation:
        with self._lock:
            self._reservations[reservation.id] = copy.deepcopy(reservation)
        return copy.deepcopy(reservation)

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        reservation = self._reservations.get(reservation_id)
        return copy.deepcopy(reservation) if reservation else None

    def update_reservation(self, reservation: Reservation) -> None:
        with self._lock:
            stored = self._reservations[reservation.id]
            stored.vehicle_id = reservation.vehicle_id
            stored.start_time = reservation.start_time
            stored.end_time = reservation.end_time
            stored.purpose = reservation.purpose
            stored.destinations = list(reservation.destinations)
            stored.notes = reservation.notes

    def update_reservation_status(self, reservation_id: str, status: ReservationStatus) -> None:
        with self._lock:
            self._reservations[reservation_id].status = status

    def update_reservation_vehicle(self, reservation_id: str, vehicle_id: str) -> None:
        with self._lock:
            stored = self._reservations[reservation_id]
            stored.vehicle_id = vehicle_id
            stored.status = ReservationStatus.PENDING_DRIVER

    def cancel_reservation(self, reservation_id: str, cancelled_by: str, reason: str) -> None:
        with self._lock:
            stored = self._reservations[reservation_id]
            stored.status = ReservationStatus.CANCELLED
            stored.cancelled_by = cancelled_by
            stored.cancel_reason = reason

    def add_declined_vehicle(self, reservation_id: str, vehicle_id: str) -> None:
        with self._lock:
            self._reservations[reservation_id].declined_vehicles.add(vehicle_id)

    def find_overlapping(
        self,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[Reservation]:
        with self._lock:
            found = [
                r for r in self._reservations.values()
                if r.vehicle_id == vehicle_id
                and r.id != exclude_id
                and r.status in BLOCKING_STATUSES
                and r.overlaps(start, end)
            ]
            return [copy.deepcopy(r) for r in sorted(found, key=lambda r: r.start_time)]

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
        with self._lock:
            found = []
            for r in self._reservations.values():
                if vehicle_id is not None and r.vehicle_id != vehicle_id:
                    continue
                if status is not None and r.status != status:
                    continue
                if from_time is not None and r.end_time <= from_time:
                    continue
                if to_time is not None and r.start_time >= to_time:
                    continue
                found.append(r)

            found.sort(key=lambda r: (r.start_time, r.created_at))
            return [copy.deepcopy(r) for r in found[offset:offset + limit]]

    def find_pending_for_driver(self, driver_id: str) -> List[Reservation]:
        vehicle = self.get_vehicle_by_driver(driver_id)
        if vehicle is None:
            return []
        return self.list_reservations(vehicle_id=vehicle.id, status=ReservationStatus.PENDING_DRIVER, limit=len(self._reservations))

    def find_confirmed_starting_between(self, start: datetime, end: datetime) -> List[Reservation]:
        with self._lock:
            found = [
                r for r in self._reservations.values()
                if r.status == ReservationStatus.CONFIRMED and start <= r.start_time < end
            ]
            return [copy.deepcopy(r) for r in sorted(found, key=lambda r: r.start_time)]

    def complete_expired(self, now: datetime) -> int:
        completed = 0
        with self._lock:
            for r in self._reservations.values():
                if r.status == ReservationStatus.CONFIRMED and r.end_time < now:
                    r.status = ReservationStatus.COMPLETED
                    completed += 1
        return completed

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------
    def create_conflict(self, winning_id: str, losing_id: str) -> ReservationConflict:
        conflict = ReservationConflict(
            id=new_id(),
            winning_reservation_id=winning_id,
            losing_reservation_id=losing_id,
            created_at=self.clock(),
        )
        with self._lock:
            self._conflicts[conflict.id] = conflict
        return copy.deepcopy(conflict)

    def get_conflict(self, conflict_id: str) -> Optional[ReservationConflict]:
        conflict = self._conflicts.get(conflict_id)
        return copy.deepcopy(conflict) if conflict else None

    def list_pending_conflicts(self) -> List[ReservationConflict]:
        with self._lock:
            pending = [c for c in self._conflicts.values() if c.is_pending]
            return [copy.deepcopy(c) for c in sorted(pending, key=lambda c: c.created_at)]

    def resolve_conflict(
        self,
        conflict_id: str,
        resolved_by: str,
        reason: str,
        status: ConflictStatus,
        resolved_at: datetime,
    ) -> bool:
        with self._lock:
            conflict = self._conflicts.get(conflict_id)
            if conflict is None or not conflict.is_pending:
                return False

            conflict.status = status
            conflict.resolved_by = resolved_by
            conflict.resolution_reason = reason
            conflict.resolved_at = resolved_at
            return True

    # ------------------------------------------------------------------
    # Dispatches
    # ------------------------------------------------------------------
    def create_dispatch(self, dispatch: Dispatch) -> Dispatch:
        with self._lock:
            self._dispatches[dispatch.id] = copy.deepcopy(dispatch)
        return copy.deepcopy(dispatch)

    def get_dispatch(self, dispatch_id: str) -> Optional[Dispatch]:
        dispatch = self._dispatches.get(dispatch_id)
        return copy.deepcopy(dispatch) if dispatch else None

    def list_dispatches(
        self,
        *,
        status: Optional[DispatchStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dispatch]:
        with self._lock:
            found = [d for d in self._dispatches.values() if status is None or d.status == status]
            found.sort(key=lambda d: d.created_at, reverse=True)
            return [copy.deepcopy(d) for d in found[offset:offset + limit]]

    def assign_dispatch(self, dispatch_id: str, vehicle_id: str, dispatcher_id: str, at: datetime) -> bool:
        with self._lock:
            dispatch = self._dispatches.get(dispatch_id)
            if dispatch is None or dispatch.status != DispatchStatus.PENDING:
                return False
            apply_assignment(dispatch, vehicle_id, dispatcher_id, at)
            return True

    def update_dispatch_status(self, dispatch_id: str, status: DispatchStatus, at: datetime) -> None:
        with self._lock:
            apply_status(self._dispatches[dispatch_id], status, at)

    def cancel_dispatch(self, dispatch_id: str, reason: str, at: datetime) -> bool:
        with self._lock:
            dispatch = self._dispatches.get(dispatch_id)
            if dispatch is None or dispatch.is_terminal:
                return False
            apply_cancellation(dispatch, reason, at)
            return True

    def get_active_dispatch_for_vehicle(self, vehicle_id: str) -> Optional[Dispatch]:
        with self._lock:
            for dispatch in self._dispatches.values():
                if dispatch.vehicle_id == vehicle_id and dispatch.is_active:
                    return copy.deepcopy(dispatch)
        return None

    def get_active_dispatch_for_driver(self, driver_id: str) -> Optional[Dispatch]:
        vehicle = self.get_vehicle_by_driver(driver_id)
        if vehicle is None:
            return None
        return self.get_active_dispatch_for_vehicle(vehicle.id)
