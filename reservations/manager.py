"""
Purpose: Scheduled bookings: create / update / cancel plus the read side.
What it does:
- Validates time windows ([start, end), not in the past at creation)
- Detects overlaps on the vehicle and applies the priority rule:
    any overlap                      -> the new booking is pending_conflict
    new priority > existing priority -> the existing booking is demoted too
  and records one ReservationConflict per overlapping booking
- Answers availability, listing, timeline and driver-inbox queries
- Runs the periodic sweeps (reminders, confirmed -> completed)

Rule: The overlap check and the insert happen under the store's vehicle lock,
so two concurrent bookings on one vehicle always see each other.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Sequence

from common.clock import Clock, utc_now
from common.errors import NotFound
from notifications.audit import snapshot
from notifications.side_effects import SideEffects

from .models import (
    LatLon,
    Reservation,
    ReservationStatus,
    ReservationUpdate,
    TimeWindow,
    new_id,
)

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


class ReservationManager:
    def __init__(
        self,
        store,
        *,
        side_effects: Optional[SideEffects] = None,
        clock: Clock = utc_now,
        reminder_minutes: int = 30,
    ):
        # store: VehicleStore + ReservationStore + ConflictStore
        self.store = store
        self.side_effects = side_effects or SideEffects()
        self.clock = clock
        self.reminder_minutes = reminder_minutes

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(
        self,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        purpose: str,
        *,
        requester_id: str,
        priority_level: int = 0,
        destinations: Optional[Sequence[str]] = None,
        notes: Optional[str] = None,
        passenger_name: Optional[str] = None,
        pickup_address: Optional[str] = None,
        pickup_location: Optional[LatLon] = None,
    ) -> Reservation:
        now = self.clock()
        TimeWindow(start, end).validate(now)

        if self.store.get_vehicle(vehicle_id) is None:
            raise NotFound(f"vehicle {vehicle_id} not found")

        with self.store.vehicle_lock(vehicle_id):
            overlaps = self.store.find_overlapping(vehicle_id, start, end)

            reservation = Reservation(
                id=new_id(),
                vehicle_id=vehicle_id,
                requester_id=requester_id,
                start_time=start,
                end_time=end,
                purpose=purpose,
                priority_level=priority_level,
                status=ReservationStatus.PENDING_CONFLICT if overlaps else ReservationStatus.CONFIRMED,
                destinations=list(destinations or []),
                notes=notes,
                passenger_name=passenger_name,
                pickup_address=pickup_address,
                pickup_location=pickup_location,
                created_at=now,
            )

            # (winning_id, losing_id) per overlapping booking
            pairs = []
            for existing in overlaps:
                if priority_level > existing.priority_level:
                    self.store.update_reservation_status(existing.id, ReservationStatus.PENDING_CONFLICT)
                    pairs.append((reservation.id, existing.id))
                else:
                    # Ties go to whoever booked first
                    pairs.append((existing.id, reservation.id))

            created = self.store.create_reservation(reservation)
            conflicts = [self.store.create_conflict(winning_id, losing_id) for winning_id, losing_id in pairs]

        if conflicts:
            logger.info(
                "Reservation %s on vehicle %s overlaps %d booking(s); status pending_conflict",
                created.id, vehicle_id, len(conflicts),
            )
        else:
            logger.info("Reservation %s confirmed on vehicle %s", created.id, vehicle_id)

        self.side_effects.audit(requester_id, "reservation.create", "reservation", created.id, None, snapshot(created))
        return created

    def update(self, reservation_id: str, changes: ReservationUpdate, actor_id: str) -> Reservation:
        """
        Merges the given fields. Overlaps are not re-checked; a moved booking
        can land on top of another one.
        """
        existing = self._require(reservation_id)
        before = snapshot(existing)

        if changes.vehicle_id is not None and self.store.get_vehicle(changes.vehicle_id) is None:
            raise NotFound(f"vehicle {changes.vehicle_id} not found")

        updated = changes.apply_to(existing)
        updated.window.validate()

        self.store.update_reservation(updated)
        self.side_effects.audit(actor_id, "reservation.update", "reservation", reservation_id, before, snapshot(updated))
        return updated

    def cancel(self, reservation_id: str, cancelled_by: str, reason: str = "") -> None:
        before = self._require(reservation_id)

        self.store.cancel_reservation(reservation_id, cancelled_by, reason)
        logger.info("Reservation %s cancelled by %s", reservation_id, cancelled_by)
        self.side_effects.audit(cancelled_by, "reservation.cancel", "reservation", reservation_id, snapshot(before), None, reason)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, reservation_id: str) -> Reservation:
        return self._require(reservation_id)

    def list(
        self,
        *,
        vehicle_id: Optional[str] = None,
        status: Optional[ReservationStatus] = None,
        from_time: Optional[datetime] = None,
        to_time: Optional[datetime] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> List[Reservation]:
        if limit <= 0:
            limit = DEFAULT_LIST_LIMIT
        return self.store.list_reservations(
            vehicle_id=vehicle_id,
            status=status,
            from_time=from_time,
            to_time=to_time,
            limit=limit,
            offset=max(offset, 0),
        )

    def check_availability(self, vehicle_id: str, start: datetime, end: datetime) -> List[Reservation]:
        """Bookings that would overlap [start, end). Empty means the slot is free."""
        TimeWindow(start, end).validate()
        return self.store.find_overlapping(vehicle_id, start, end)

    def vehicle_timeline(self, vehicle_id: str, day: date, tz: timezone = timezone.utc) -> List[Reservation]:
        """Live bookings (confirmed, pending_conflict, pending_driver) touching the given day."""
        day_start = datetime.combine(day, time.min, tzinfo=tz)
        return self.store.find_overlapping(vehicle_id, day_start, day_start + timedelta(days=1))

    def pending_for_driver(self, driver_id: str) -> List[Reservation]:
        return self.store.find_pending_for_driver(driver_id)

    # ------------------------------------------------------------------
    # Periodic sweeps
    # ------------------------------------------------------------------
    def upcoming_reminders(self, minutes_before: Optional[int] = None) -> List[Reservation]:
        """
        Confirmed bookings starting in the one-minute slice `minutes_before` from now.
        Meant to run once a minute; each requester is reminded exactly once.
        """
        minutes = minutes_before if minutes_before is not None else self.reminder_minutes
        now = self.clock()
        due = self.store.find_confirmed_starting_between(
            now + timedelta(minutes=minutes - 1),
            now + timedelta(minutes=minutes),
        )

        for reservation in due:
            self.side_effects.notify_user(
                reservation.requester_id,
                "Reservation Reminder",
                f"{reservation.purpose} starts in {minutes} minutes",
                {"type": "reservation_reminder", "reservation_id": reservation.id},
            )
        return due

    def complete_expired(self) -> int:
        completed = self.store.complete_expired(self.clock())
        if completed:
            logger.info("Marked %d expired reservation(s) completed", completed)
        return completed

    def _require(self, reservation_id: str) -> Reservation:
        reservation = self.store.get_reservation(reservation_id)
        if reservation is None:
            raise NotFound(f"reservation {reservation_id} not found")
        return reservation
