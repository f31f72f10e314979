"""
Purpose: Service around the dispatch state machine (immediate trips).
What it does:
Loads the trip, checks the transition with dispatch.state_machines, persists it
through the store's conditional updates, then fires audit / push side effects.

Quick board collapses create -> assign -> accepted -> en_route into one call
for a passenger who is already standing at the vehicle.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional

from common.clock import Clock, utc_now
from common.errors import InvalidState, NotFound, VehicleBusy
from notifications.audit import snapshot
from notifications.push import Role
from notifications.side_effects import SideEffects
from reservations.models import new_id

from .models import Dispatch, DispatchRequest, DispatchStatus, QuickBoardRequest
from .policy import BookingPolicy, default_booking_policy
from .state_machines import ensure_assignable, ensure_cancellable, ensure_progressable

logger = logging.getLogger(__name__)


class DispatchStateMachine:
    def __init__(
        self,
        store,
        *,
        side_effects: Optional[SideEffects] = None,
        policy: Optional[BookingPolicy] = None,
        clock: Clock = utc_now,
    ):
        # store: VehicleStore + DispatchStore
        self.store = store
        self.side_effects = side_effects or SideEffects()
        self.policy = policy or default_booking_policy()
        self.clock = clock

    def create(self, request: DispatchRequest, requester_id: str) -> Dispatch:
        dispatch = Dispatch(
            id=new_id(),
            requester_id=requester_id,
            purpose=request.purpose,
            pickup_address=request.pickup_address,
            passenger_name=request.passenger_name,
            passenger_count=request.passenger_count if request.passenger_count > 0 else self.policy.default_passenger_count,
            notes=request.notes,
            pickup_location=request.pickup_location,
            dropoff_address=request.dropoff_address,
            dropoff_location=request.dropoff_location,
            created_at=self.clock(),
        )
        created = self.store.create_dispatch(dispatch)
        logger.info("Dispatch %s created by %s", created.id, requester_id)

        self.side_effects.audit(requester_id, "dispatch.create", "dispatch", created.id, None, snapshot(created))
        self.side_effects.notify_role(
            "New Dispatch",
            created.purpose,
            {"type": "dispatch_created", "dispatch_id": created.id},
            Role.ADMIN,
            Role.DISPATCHER,
        )
        return created

    def get(self, dispatch_id: str) -> Dispatch:
        dispatch = self.store.get_dispatch(dispatch_id)
        if dispatch is None:
            raise NotFound(f"dispatch {dispatch_id} not found")
        return dispatch

    def list(self, *, status: Optional[DispatchStatus] = None, limit: int = 0, offset: int = 0) -> List[Dispatch]:
        return self.store.list_dispatches(
            status=status,
            limit=self.policy.clamp_limit(limit),
            offset=max(offset, 0),
        )

    def current_trip_for_driver(self, driver_id: str) -> Optional[Dispatch]:
        return self.store.get_active_dispatch_for_driver(driver_id)

    def assign(self, dispatch_id: str, vehicle_id: str, dispatcher_id: str) -> Dispatch:
        before = self.get(dispatch_id)
        ensure_assignable(before)

        if self.store.get_vehicle(vehicle_id) is None:
            raise NotFound(f"vehicle {vehicle_id} not found")

        if not self.store.assign_dispatch(dispatch_id, vehicle_id, dispatcher_id, self.clock()):
            # Someone else assigned it between our read and the write
            raise InvalidState("dispatch is not in pending status")

        after = self.get(dispatch_id)
        logger.info("Dispatch %s assigned to vehicle %s by %s", dispatch_id, vehicle_id, dispatcher_id)

        self.side_effects.audit(dispatcher_id, "dispatch.assign", "dispatch", dispatch_id, snapshot(before), snapshot(after))
        self.side_effects.notify_vehicle_driver(
            vehicle_id,
            "Trip Assigned",
            "You have been assigned a new trip",
            {"type": "dispatch_assigned", "dispatch_id": dispatch_id},
        )
        return after

    def update_status(self, dispatch_id: str, new_status: DispatchStatus, actor_id: str) -> Dispatch:
        """
        Moves an unfinished trip to accepted / en_route / arrived / completed and
        stamps the matching timestamp. Steps may be skipped; the driver app
        sends them in order.
        """
        before = self.get(dispatch_id)
        ensure_progressable(before, new_status)

        self.store.update_dispatch_status(dispatch_id, new_status, self.clock())

        after = self.get(dispatch_id)
        logger.info("Dispatch %s %s -> %s", dispatch_id, before.status.value, new_status.value)
        self.side_effects.audit(actor_id, "dispatch.status_change", "dispatch", dispatch_id, snapshot(before), snapshot(after))
        return after

    def cancel(self, dispatch_id: str, reason: str, actor_id: str) -> Dispatch:
        before = self.get(dispatch_id)
        ensure_cancellable(before)

        if not self.store.cancel_dispatch(dispatch_id, reason, self.clock()):
            raise InvalidState(f"dispatch {dispatch_id} can no longer be cancelled")

        after = self.get(dispatch_id)
        logger.info("Dispatch %s cancelled by %s", dispatch_id, actor_id)
        self.side_effects.audit(actor_id, "dispatch.cancel", "dispatch", dispatch_id, snapshot(before), snapshot(after), reason)
        return after

    def quick_board(self, request: QuickBoardRequest, dispatcher_id: str) -> Dispatch:
        if self.store.get_vehicle(request.vehicle_id) is None:
            raise NotFound(f"vehicle {request.vehicle_id} not found")

        now = self.clock()

        with self.store.vehicle_lock(request.vehicle_id):
            if self.store.get_active_dispatch_for_vehicle(request.vehicle_id) is not None:
                raise VehicleBusy()

            dispatch = Dispatch(
                id=new_id(),
                requester_id=dispatcher_id,
                purpose=request.purpose or self.policy.quick_board_purpose,
                pickup_address=self.policy.quick_board_pickup_address,
                passenger_name=request.passenger_name,
                passenger_count=request.passenger_count if request.passenger_count > 0 else self.policy.default_passenger_count,
                notes=request.notes,
                created_at=now,
            )
            if request.estimated_minutes > 0:
                dispatch.estimated_end_at = now + timedelta(minutes=request.estimated_minutes)

            with self.store.atomic():
                self.store.create_dispatch(dispatch)
                if not self.store.assign_dispatch(dispatch.id, request.vehicle_id, dispatcher_id, now):
                    raise InvalidState("dispatch is not in pending status")
                self.store.update_dispatch_status(dispatch.id, DispatchStatus.ACCEPTED, now)
                self.store.update_dispatch_status(dispatch.id, DispatchStatus.EN_ROUTE, now)

        result = self.get(dispatch.id)
        logger.info("Quick board %s on vehicle %s for %s", result.id, request.vehicle_id, request.passenger_name)
        self.side_effects.audit(dispatcher_id, "dispatch.quick_board", "dispatch", result.id, None, snapshot(result))
        return result
