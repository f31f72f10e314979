"""
Purpose: The unified booking entry point.
What it does:
- is_now=True  -> immediate Dispatch (assigned straight away in "specific" mode,
                  left pending for a dispatcher in "any" mode)
- is_now=False -> Reservation in pending_driver on the requested vehicle, or on
                  the first free vehicle (name order) in "any" mode
- Driver accept / decline of a pending_driver reservation
- The decline cascade: exclude the current vehicle plus every vehicle that
  already declined, offer the booking to the next free vehicle, and stop at
  driver_declined once nobody is left. The exclusion set grows on every
  decline, so the cascade always ends.

Rule: Future bookings made here skip the priority/conflict path; the driver's
accept is what confirms them.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, List, Optional, TypeVar

from common.clock import Clock, utc_now
from common.errors import InvalidState, NotFound, PermissionDenied, ResourceUnavailable, ValidationError
from notifications.audit import snapshot
from notifications.side_effects import SideEffects
from reservations.manager import ReservationManager
from reservations.models import Reservation, ReservationStatus, TimeWindow, new_id

from .lifecycle import DispatchStateMachine
from .models import BookingMode, BookingRequest, BookingResult, DispatchRequest
from .policy import BookingPolicy, default_booking_policy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BookingOrchestrator:
    def __init__(
        self,
        store,
        *,
        dispatches: Optional[DispatchStateMachine] = None,
        reservations: Optional[ReservationManager] = None,
        side_effects: Optional[SideEffects] = None,
        policy: Optional[BookingPolicy] = None,
        clock: Clock = utc_now,
    ):
        # store: the full EntityStore
        self.store = store
        self.side_effects = side_effects or SideEffects()
        self.policy = policy or default_booking_policy()
        self.clock = clock

        self.dispatches = dispatches or DispatchStateMachine(
            store, side_effects=self.side_effects, policy=self.policy, clock=clock,
        )
        self.reservations = reservations or ReservationManager(
            store, side_effects=self.side_effects, clock=clock,
        )

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------
    def create_booking(self, request: BookingRequest, requester_id: str, priority_level: int = 0) -> BookingResult:
        if not request.purpose:
            raise ValidationError("purpose is required", code="MISSING_FIELD")
        if not request.pickup_address:
            raise ValidationError("pickup_address is required", code="MISSING_FIELD")
        if request.mode == BookingMode.SPECIFIC and not request.vehicle_id:
            raise ValidationError("vehicle_id is required when mode is specific", code="MISSING_VEHICLE")

        if request.is_now:
            return self._book_now(request, requester_id)
        return self._book_later(request, requester_id, priority_level)

    def _book_now(self, request: BookingRequest, requester_id: str) -> BookingResult:
        dispatch = self.dispatches.create(
            DispatchRequest(
                purpose=request.purpose,
                pickup_address=request.pickup_address,
                passenger_name=request.passenger_name,
                passenger_count=self.policy.default_passenger_count,
                notes=request.notes,
                pickup_location=request.pickup_location,
                # First stop doubles as the drop-off for an immediate trip
                dropoff_address=request.destinations[0] if request.destinations else None,
            ),
            requester_id,
        )

        if request.mode == BookingMode.SPECIFIC:
            dispatch = self.dispatches.assign(dispatch.id, request.vehicle_id, requester_id)

        return BookingResult.for_dispatch(dispatch)

    def _book_later(self, request: BookingRequest, requester_id: str, priority_level: int) -> BookingResult:
        window = request.window
        if window is None:
            raise ValidationError("start_time and end_time are required for future bookings", code="MISSING_TIME")

        now = self.clock()
        window.validate(now)

        def place(vehicle_id: str) -> Reservation:
            return self.store.create_reservation(
                Reservation(
                    id=new_id(),
                    vehicle_id=vehicle_id,
                    requester_id=requester_id,
                    start_time=window.start,
                    end_time=window.end,
                    purpose=request.purpose,
                    priority_level=priority_level,
                    status=ReservationStatus.PENDING_DRIVER,
                    destinations=list(request.destinations),
                    notes=request.notes,
                    passenger_name=request.passenger_name,
                    pickup_address=request.pickup_address,
                    pickup_location=request.pickup_location,
                    created_at=now,
                )
            )

        if request.mode == BookingMode.SPECIFIC:
            if self.store.get_vehicle(request.vehicle_id) is None:
                raise NotFound(f"vehicle {request.vehicle_id} not found")
            with self.store.vehicle_lock(request.vehicle_id):
                reservation = place(request.vehicle_id)
        else:
            reservation = self._place_on_first_available(window, (), place)
            if reservation is None:
                raise ResourceUnavailable()

        logger.info("Reservation %s pending driver on vehicle %s", reservation.id, reservation.vehicle_id)
        self.side_effects.audit(requester_id, "reservation.create", "reservation", reservation.id, None, snapshot(reservation))
        self._offer_to_driver(reservation)
        return BookingResult.for_reservation(reservation)

    # ------------------------------------------------------------------
    # Driver responses
    # ------------------------------------------------------------------
    def driver_accept(self, reservation_id: str, driver_id: str) -> Reservation:
        reservation = self._require(reservation_id)

        with self.store.vehicle_lock(reservation.vehicle_id):
            reservation = self._require_pending_for(reservation_id, driver_id)
            self.store.update_reservation_status(reservation_id, ReservationStatus.CONFIRMED)

        logger.info("Reservation %s accepted by driver %s", reservation_id, driver_id)
        self.side_effects.audit(driver_id, "reservation.driver_accept", "reservation", reservation_id, snapshot(reservation), None)
        self.side_effects.notify_user(
            reservation.requester_id,
            "Reservation Confirmed",
            reservation.purpose,
            {"type": "reservation_confirmed", "reservation_id": reservation_id},
        )
        return self._require(reservation_id)

    def driver_decline(self, reservation_id: str, driver_id: str, reason: str = "") -> Reservation:
        reservation = self._require(reservation_id)

        with self.store.vehicle_lock(reservation.vehicle_id):
            reservation = self._require_pending_for(reservation_id, driver_id)
            # Excluded by vehicle, since availability is looked up per vehicle
            self.store.add_declined_vehicle(reservation_id, reservation.vehicle_id)

        logger.info("Reservation %s declined by driver %s", reservation_id, driver_id)
        self.side_effects.audit(driver_id, "reservation.driver_decline", "reservation", reservation_id, snapshot(reservation), None, reason)

        return self._reassign(reservation_id)

    def _reassign(self, reservation_id: str) -> Reservation:
        reservation = self._require(reservation_id)
        excluded = reservation.declined_vehicles.exclusion_set(reservation.vehicle_id)

        def place(vehicle_id: str) -> str:
            self.store.update_reservation_vehicle(reservation_id, vehicle_id)
            return vehicle_id

        new_vehicle_id = self._place_on_first_available(reservation.window, excluded, place)

        if new_vehicle_id is None:
            self.store.update_reservation_status(reservation_id, ReservationStatus.DRIVER_DECLINED)
            logger.warning(
                "Reservation %s declined by %d vehicle(s), no replacement available",
                reservation_id, len(reservation.declined_vehicles),
            )
            return self._require(reservation_id)

        logger.info("Reservation %s reassigned %s -> %s", reservation_id, reservation.vehicle_id, new_vehicle_id)
        reassigned = self._require(reservation_id)
        self._offer_to_driver(reassigned)
        return reassigned

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def pending_for_driver(self, driver_id: str) -> List[Reservation]:
        return self.reservations.pending_for_driver(driver_id)

    def vehicle_timeline(self, vehicle_id: str, day: date) -> List[Reservation]:
        return self.reservations.vehicle_timeline(vehicle_id, day)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _place_on_first_available(
        self,
        window: TimeWindow,
        exclude_ids: Iterable[str],
        place: Callable[[str], T],
    ) -> Optional[T]:
        """
        Runs `place` for the first free vehicle in name order. Each candidate is
        re-checked under its lock so a slot taken meanwhile is skipped.
        """
        exclude_ids = frozenset(exclude_ids)

        for vehicle_id in self.store.find_available_vehicles(window.start, window.end, exclude_ids):
            with self.store.vehicle_lock(vehicle_id):
                still_free = self.store.find_available_vehicles(window.start, window.end, exclude_ids)
                if vehicle_id in still_free:
                    return place(vehicle_id)
        return None

    def _offer_to_driver(self, reservation: Reservation) -> None:
        self.side_effects.notify_vehicle_driver(
            reservation.vehicle_id,
            "Reservation Pending",
            reservation.purpose,
            {"type": "reservation_pending", "reservation_id": reservation.id},
        )

    def _require(self, reservation_id: str) -> Reservation:
        reservation = self.store.get_reservation(reservation_id)
        if reservation is None:
            raise NotFound(f"reservation {reservation_id} not found")
        return reservation

    def _require_pending_for(self, reservation_id: str, driver_id: str) -> Reservation:
        reservation = self._require(reservation_id)
        if reservation.status != ReservationStatus.PENDING_DRIVER:
            raise InvalidState("reservation is not pending driver acceptance")

        vehicle = self.store.get_vehicle_by_driver(driver_id)
        if vehicle is None or vehicle.id != reservation.vehicle_id:
            raise PermissionDenied()
        return reservation
