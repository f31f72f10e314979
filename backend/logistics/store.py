"""
Purpose: Entity store on the Django ORM.
What it does:
Implements every capability in store/protocols.py against the logistics
models, converting rows to the engine's dataclasses on the way out.

- availability is one query (~Exists over reservations and active trips)
- conditional updates are filter(..., status=...).update(...) and report
  whether a row matched
- vehicle_lock opens a transaction and takes the vehicle row FOR UPDATE
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, List, Optional

from django.db import transaction
from django.db.models import Exists, OuterRef
from django.db.models.functions import Now

from common.clock import Clock, utc_now
from dispatch.models import ACTIVE_DISPATCH_STATUSES, TERMINAL_DISPATCH_STATUSES, Dispatch, DispatchStatus
from dispatch.state_machines import PROGRESS_TIMESTAMPS
from fleet.models import Vehicle, VehicleWithStatus
from fleet.policy import FleetPolicy, default_fleet_policy
from fleet.selection import derive_vehicle_status
from reservations.models import (
    BLOCKING_STATUSES,
    OCCUPYING_STATUSES,
    ConflictStatus,
    DeclinedVehicles,
    Reservation,
    ReservationConflict,
    ReservationStatus,
    new_id,
)

from . import models as orm


def _values(statuses) -> List[str]:
    return [status.value for status in statuses]


def _point(lat, lng):
    if lat is None or lng is None:
        return None
    return (lat, lng)


def _split(point):
    return (point[0], point[1]) if point else (None, None)


# ----------------------------------------------------------------------
# Row -> dataclass
# ----------------------------------------------------------------------
def to_vehicle(row: orm.Vehicle) -> Vehicle:
    return Vehicle.new(
        row.id,
        row.name,
        driver_id=row.driver_id or None,
        license_plate=row.license_plate,
        is_maintenance=row.is_maintenance,
        lat=row.latitude,
        lon=row.longitude,
        location_at=row.location_at,
    )


def to_reservation(row: orm.Reservation) -> Reservation:
    return Reservation(
        id=row.id,
        vehicle_id=row.vehicle_id,
        requester_id=row.requester_id,
        start_time=row.start_time,
        end_time=row.end_time,
        purpose=row.purpose,
        priority_level=row.priority_level,
        status=ReservationStatus(row.status),
        destinations=list(row.destinations or []),
        notes=row.notes,
        passenger_name=row.passenger_name,
        pickup_address=row.pickup_address,
        pickup_location=_point(row.pickup_lat, row.pickup_lng),
        declined_vehicles=DeclinedVehicles(row.declined_vehicle_ids or []),
        cancel_reason=row.cancel_reason,
        cancelled_by=row.cancelled_by,
        created_at=row.created_at,
    )


def to_conflict(row: orm.ReservationConflict) -> ReservationConflict:
    return ReservationConflict(
        id=row.id,
        winning_reservation_id=row.winning_reservation_id,
        losing_reservation_id=row.losing_reservation_id,
        status=ConflictStatus(row.status),
        resolved_by=row.resolved_by,
        resolution_reason=row.resolution_reason,
        resolved_at=row.resolved_at,
        created_at=row.created_at,
    )


def to_dispatch(row: orm.Dispatch) -> Dispatch:
    return Dispatch(
        id=row.id,
        requester_id=row.requester_id,
        purpose=row.purpose,
        pickup_address=row.pickup_address,
        status=DispatchStatus(row.status),
        vehicle_id=row.vehicle_id,
        dispatcher_id=row.dispatcher_id,
        passenger_name=row.passenger_name,
        passenger_count=row.passenger_count,
        notes=row.notes,
        pickup_location=_point(row.pickup_lat, row.pickup_lng),
        dropoff_address=row.dropoff_address,
        dropoff_location=_point(row.dropoff_lat, row.dropoff_lng),
        estimated_end_at=row.estimated_end_at,
        assigned_at=row.assigned_at,
        accepted_at=row.accepted_at,
        en_route_at=row.en_route_at,
        arrived_at=row.arrived_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        cancel_reason=row.cancel_reason,
        created_at=row.created_at,
    )


class DjangoEntityStore:
    def __init__(self, *, clock: Clock = utc_now, fleet_policy: Optional[FleetPolicy] = None):
        self.clock = clock
        self.fleet_policy = fleet_policy or default_fleet_policy()

    # ------------------------------------------------------------------
    # Transactions / locking
    # ------------------------------------------------------------------
    def atomic(self):
        return transaction.atomic()

    @contextmanager
    def vehicle_lock(self, vehicle_id: str) -> Iterator[None]:
        with transaction.atomic():
            # Evaluated for the row lock only; a missing vehicle locks nothing
            list(orm.Vehicle.objects.select_for_update().filter(pk=vehicle_id).values_list("pk", flat=True))
            yield

    # ------------------------------------------------------------------
    # Vehicles
    # ------------------------------------------------------------------
    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        row = orm.Vehicle.objects.filter(pk=vehicle_id).first()
        return to_vehicle(row) if row else None

    def get_vehicle_by_driver(self, driver_id: str) -> Optional[Vehicle]:
        row = orm.Vehicle.objects.filter(driver_id=driver_id).first()
        return to_vehicle(row) if row else None

    def list_vehicles(self) -> List[Vehicle]:
        return [to_vehicle(row) for row in orm.Vehicle.objects.order_by("name", "id")]

    def list_vehicles_with_status(self, now: datetime) -> List[VehicleWithStatus]:
        rows = orm.Vehicle.objects.annotate(
            has_active_dispatch=Exists(
                orm.Dispatch.objects.filter(vehicle=OuterRef("pk"), status__in=_values(ACTIVE_DISPATCH_STATUSES))
            ),
            has_current_reservation=Exists(
                orm.Reservation.objects.filter(
                    vehicle=OuterRef("pk"),
                    status=ReservationStatus.CONFIRMED.value,
                    start_time__lte=now,
                    end_time__gt=now,
                )
            ),
        ).order_by("name", "id")

        result = []
        for row in rows:
            vehicle = to_vehicle(row)
            status = derive_vehicle_status(
                vehicle,
                now=now,
                has_active_dispatch=row.has_active_dispatch,
                has_current_reservation=row.has_current_reservation,
                policy=self.fleet_policy,
            )
            result.append(VehicleWithStatus(vehicle=vehicle, status=status))
        return result

    def find_available_vehicles(
        self,
        start: datetime,
        end: datetime,
        exclude_ids: Iterable[str] = (),
    ) -> List[str]:
        overlapping = orm.Reservation.objects.filter(
            vehicle=OuterRef("pk"),
            status__in=_values(OCCUPYING_STATUSES),
            start_time__lt=end,
            end_time__gt=start,
        )
        in_trip = orm.Dispatch.objects.filter(vehicle=OuterRef("pk"), status__in=_values(ACTIVE_DISPATCH_STATUSES))

        rows = (
            orm.Vehicle.objects.filter(is_maintenance=False, driver_id__isnull=False)
            .exclude(driver_id="")
            .exclude(pk__in=list(exclude_ids))
            .filter(~Exists(overlapping), ~Exists(in_trip))
            .order_by("name", "id")
        )
        return list(rows.values_list("id", flat=True))

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------
    def create_reservation(self, reservation: Reservation) -> Reservation:
        pickup_lat, pickup_lng = _split(reservation.pickup_location)
        row = orm.Reservation.objects.create(
            id=reservation.id,
            vehicle_id=reservation.vehicle_id,
            requester_id=reservation.requester_id,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            purpose=reservation.purpose,
            destinations=list(reservation.destinations),
            notes=reservation.notes,
            passenger_name=reservation.passenger_name,
            pickup_address=reservation.pickup_address,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            priority_level=reservation.priority_level,
            status=reservation.status.value,
            declined_vehicle_ids=reservation.declined_vehicles.as_list(),
            cancel_reason=reservation.cancel_reason,
            cancelled_by=reservation.cancelled_by,
            created_at=reservation.created_at,
        )
        return to_reservation(row)

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        row = orm.Reservation.objects.filter(pk=reservation_id).first()
        return to_reservation(row) if row else None

    def update_reservation(self, reservation: Reservation) -> None:
        orm.Reservation.objects.filter(pk=reservation.id).update(
            vehicle_id=reservation.vehicle_id,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            purpose=reservation.purpose,
            destinations=list(reservation.destinations),
            notes=reservation.notes,
            updated_at=Now(),
        )

    def update_reservation_status(self, reservation_id: str, status: ReservationStatus) -> None:
        orm.Reservation.objects.filter(pk=reservation_id).update(status=status.value, updated_at=Now())

    def update_reservation_vehicle(self, reservation_id: str, vehicle_id: str) -> None:
        orm.Reservation.objects.filter(pk=reservation_id).update(
            vehicle_id=vehicle_id,
            status=ReservationStatus.PENDING_DRIVER.value,
            updated_at=Now(),
        )

    def cancel_reservation(self, reservation_id: str, cancelled_by: str, reason: str) -> None:
        orm.Reservation.objects.filter(pk=reservation_id).update(
            status=ReservationStatus.CANCELLED.value,
            cancelled_by=cancelled_by,
            cancel_reason=reason,
            updated_at=Now(),
        )

    def add_declined_vehicle(self, reservation_id: str, vehicle_id: str) -> None:
        with transaction.atomic():
            row = orm.Reservation.objects.select_for_update().get(pk=reservation_id)
            declined = DeclinedVehicles(row.declined_vehicle_ids or [])
            if declined.add(vehicle_id):
                row.declined_vehicle_ids = declined.as_list()
                row.save(update_fields=["declined_vehicle_ids", "updated_at"])

    def find_overlapping(
        self,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[Reservation]:
        rows = orm.Reservation.objects.filter(
            vehicle_id=vehicle_id,
            status__in=_values(BLOCKING_STATUSES),
            start_time__lt=end,
            end_time__gt=start,
        )
        if exclude_id:
            rows = rows.exclude(pk=exclude_id)
        return [to_reservation(row) for row in rows.order_by("start_time")]

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
        rows = orm.Reservation.objects.all()
        if vehicle_id is not None:
            rows = rows.filter(vehicle_id=vehicle_id)
        if status is not None:
            rows = rows.filter(status=status.value)
        if from_time is not None:
            rows = rows.filter(end_time__gt=from_time)
        if to_time is not None:
            rows = rows.filter(start_time__lt=to_time)

        rows = rows.order_by("start_time", "created_at")[offset:offset + limit]
        return [to_reservation(row) for row in rows]

    def find_pending_for_driver(self, driver_id: str) -> List[Reservation]:
        rows = orm.Reservation.objects.filter(
            vehicle__driver_id=driver_id,
            status=ReservationStatus.PENDING_DRIVER.value,
        ).order_by("start_time")
        return [to_reservation(row) for row in rows]

    def find_confirmed_starting_between(self, start: datetime, end: datetime) -> List[Reservation]:
        rows = orm.Reservation.objects.filter(
            status=ReservationStatus.CONFIRMED.value,
            start_time__gte=start,
            start_time__lt=end,
        ).order_by("start_time")
        return [to_reservation(row) for row in rows]

    def complete_expired(self, now: datetime) -> int:
        return orm.Reservation.objects.filter(
            status=ReservationStatus.CONFIRMED.value,
            end_time__lt=now,
        ).update(status=ReservationStatus.COMPLETED.value, updated_at=Now())

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------
    def create_conflict(self, winning_id: str, losing_id: str) -> ReservationConflict:
        row = orm.ReservationConflict.objects.create(
            id=new_id(),
            winning_reservation_id=winning_id,
            losing_reservation_id=losing_id,
            created_at=self.clock(),
        )
        return to_conflict(row)

    def get_conflict(self, conflict_id: str) -> Optional[ReservationConflict]:
        row = orm.ReservationConflict.objects.filter(pk=conflict_id).first()
        return to_conflict(row) if row else None

    def list_pending_conflicts(self) -> List[ReservationConflict]:
        rows = orm.ReservationConflict.objects.filter(status=ConflictStatus.PENDING.value).order_by("created_at")
        return [to_conflict(row) for row in rows]

    def resolve_conflict(
        self,
        conflict_id: str,
        resolved_by: str,
        reason: str,
        status: ConflictStatus,
        resolved_at: datetime,
    ) -> bool:
        matched = orm.ReservationConflict.objects.filter(
            pk=conflict_id,
            status=ConflictStatus.PENDING.value,
        ).update(
            status=status.value,
            resolved_by=resolved_by,
            resolution_reason=reason,
            resolved_at=resolved_at,
        )
        return matched == 1

    # ------------------------------------------------------------------
    # Dispatches
    # ------------------------------------------------------------------
    def create_dispatch(self, dispatch: Dispatch) -> Dispatch:
        pickup_lat, pickup_lng = _split(dispatch.pickup_location)
        dropoff_lat, dropoff_lng = _split(dispatch.dropoff_location)
        row = orm.Dispatch.objects.create(
            id=dispatch.id,
            vehicle_id=dispatch.vehicle_id,
            requester_id=dispatch.requester_id,
            dispatcher_id=dispatch.dispatcher_id,
            purpose=dispatch.purpose,
            passenger_name=dispatch.passenger_name,
            passenger_count=dispatch.passenger_count,
            notes=dispatch.notes,
            pickup_address=dispatch.pickup_address,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            dropoff_address=dispatch.dropoff_address,
            dropoff_lat=dropoff_lat,
            dropoff_lng=dropoff_lng,
            estimated_end_at=dispatch.estimated_end_at,
            status=dispatch.status.value,
            created_at=dispatch.created_at,
        )
        return to_dispatch(row)

    def get_dispatch(self, dispatch_id: str) -> Optional[Dispatch]:
        row = orm.Dispatch.objects.filter(pk=dispatch_id).first()
        return to_dispatch(row) if row else None

    def list_dispatches(
        self,
        *,
        status: Optional[DispatchStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dispatch]:
        rows = orm.Dispatch.objects.all()
        if status is not None:
            rows = rows.filter(status=status.value)
        return [to_dispatch(row) for row in rows.order_by("-created_at")[offset:offset + limit]]

    def assign_dispatch(self, dispatch_id: str, vehicle_id: str, dispatcher_id: str, at: datetime) -> bool:
        matched = orm.Dispatch.objects.filter(
            pk=dispatch_id,
            status=DispatchStatus.PENDING.value,
        ).update(
            vehicle_id=vehicle_id,
            dispatcher_id=dispatcher_id,
            status=DispatchStatus.ASSIGNED.value,
            assigned_at=at,
            updated_at=Now(),
        )
        return matched == 1

    def update_dispatch_status(self, dispatch_id: str, status: DispatchStatus, at: datetime) -> None:
        changes = {"status": status.value, "updated_at": Now()}
        timestamp_field = PROGRESS_TIMESTAMPS.get(status)
        if timestamp_field:
            changes[timestamp_field] = at
        orm.Dispatch.objects.filter(pk=dispatch_id).update(**changes)

    def cancel_dispatch(self, dispatch_id: str, reason: str, at: datetime) -> bool:
        matched = (
            orm.Dispatch.objects.filter(pk=dispatch_id)
            .exclude(status__in=_values(TERMINAL_DISPATCH_STATUSES))
            .update(
                status=DispatchStatus.CANCELLED.value,
                cancelled_at=at,
                cancel_reason=reason,
                updated_at=Now(),
            )
        )
        return matched == 1

    def get_active_dispatch_for_vehicle(self, vehicle_id: str) -> Optional[Dispatch]:
        row = (
            orm.Dispatch.objects.filter(vehicle_id=vehicle_id, status__in=_values(ACTIVE_DISPATCH_STATUSES))
            .order_by("-created_at")
            .first()
        )
        return to_dispatch(row) if row else None

    def get_active_dispatch_for_driver(self, driver_id: str) -> Optional[Dispatch]:
        row = (
            orm.Dispatch.objects.filter(vehicle__driver_id=driver_id, status__in=_values(ACTIVE_DISPATCH_STATUSES))
            .order_by("-created_at")
            .first()
        )
        return to_dispatch(row) if row else None
