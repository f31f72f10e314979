"""
Purpose: Drives a ReservationConflict from pending to one terminal resolution.
What it does:

    pending -> resolved_reassign   loser moved to another vehicle, both confirmed
            -> resolved_changed    loser moved to another time, both confirmed
            -> resolved_cancelled  loser cancelled, winner confirmed
            -> force_assigned      admin override: loser confirmed, WINNER cancelled

Each resolution claims the conflict with a conditional update first, so two
admins resolving the same conflict at once cannot both win; the loser of that
race gets ALREADY_RESOLVED and nothing is written.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from common.clock import Clock, utc_now
from common.errors import InvalidState, NotFound, ValidationError
from notifications.audit import snapshot
from notifications.side_effects import SideEffects

from .models import ConflictStatus, Reservation, ReservationConflict, ReservationStatus, TimeWindow

logger = logging.getLogger(__name__)


class ConflictResolver:
    def __init__(self, store, *, side_effects: Optional[SideEffects] = None, clock: Clock = utc_now):
        # store: VehicleStore + ReservationStore + ConflictStore, with atomic()
        self.store = store
        self.side_effects = side_effects or SideEffects()
        self.clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, conflict_id: str) -> ReservationConflict:
        conflict = self.store.get_conflict(conflict_id)
        if conflict is None:
            raise NotFound(f"conflict {conflict_id} not found")
        return conflict

    def list_pending(self) -> List[ReservationConflict]:
        return self.store.list_pending_conflicts()

    # ------------------------------------------------------------------
    # Resolutions
    # ------------------------------------------------------------------
    def resolve_reassign(self, conflict_id: str, new_vehicle_id: str, resolved_by: str, reason: str = "") -> ReservationConflict:
        conflict, winning, losing = self._load(conflict_id)

        if self.store.get_vehicle(new_vehicle_id) is None:
            raise NotFound(f"vehicle {new_vehicle_id} not found")

        with self.store.atomic():
            self._claim(conflict, resolved_by, reason, ConflictStatus.RESOLVED_REASSIGN)

            losing.vehicle_id = new_vehicle_id
            self.store.update_reservation(losing)
            self.store.update_reservation_status(losing.id, ReservationStatus.CONFIRMED)
            self.store.update_reservation_status(winning.id, ReservationStatus.CONFIRMED)

        return self._finish(conflict, "conflict.resolve_reassign", resolved_by, reason, after=snapshot(losing))

    def resolve_change_time(
        self,
        conflict_id: str,
        new_start: datetime,
        new_end: datetime,
        resolved_by: str,
        reason: str = "",
    ) -> ReservationConflict:
        TimeWindow(new_start, new_end).validate()
        conflict, winning, losing = self._load(conflict_id)

        with self.store.atomic():
            self._claim(conflict, resolved_by, reason, ConflictStatus.RESOLVED_CHANGED)

            # The new slot is taken as given; other bookings are not re-checked
            losing.start_time = new_start
            losing.end_time = new_end
            self.store.update_reservation(losing)
            self.store.update_reservation_status(losing.id, ReservationStatus.CONFIRMED)
            self.store.update_reservation_status(winning.id, ReservationStatus.CONFIRMED)

        return self._finish(conflict, "conflict.resolve_change_time", resolved_by, reason, after=snapshot(losing))

    def resolve_cancel(self, conflict_id: str, resolved_by: str, reason: str = "") -> ReservationConflict:
        conflict, winning, losing = self._load(conflict_id)

        with self.store.atomic():
            self._claim(conflict, resolved_by, reason, ConflictStatus.RESOLVED_CANCELLED)

            self.store.cancel_reservation(losing.id, resolved_by, reason)
            self.store.update_reservation_status(winning.id, ReservationStatus.CONFIRMED)

        return self._finish(conflict, "conflict.resolve_cancel", resolved_by, reason)

    def force_assign(self, conflict_id: str, resolved_by: str, reason: str) -> ReservationConflict:
        """
        Overrides the priority rule: the original occupant (loser) keeps the
        slot and the booking that won on priority is cancelled.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason is required for force assign", code="REASON_REQUIRED")

        conflict, winning, losing = self._load(conflict_id)

        with self.store.atomic():
            self._claim(conflict, resolved_by, reason, ConflictStatus.FORCE_ASSIGNED)

            self.store.update_reservation_status(losing.id, ReservationStatus.CONFIRMED)
            self.store.cancel_reservation(winning.id, resolved_by, f"force assigned: {reason}")

        return self._finish(conflict, "conflict.force_assign", resolved_by, reason)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _load(self, conflict_id: str) -> Tuple[ReservationConflict, Reservation, Reservation]:
        conflict = self.get(conflict_id)
        if not conflict.is_pending:
            raise InvalidState("conflict is already resolved", code="ALREADY_RESOLVED")

        winning = self.store.get_reservation(conflict.winning_reservation_id)
        losing = self.store.get_reservation(conflict.losing_reservation_id)
        if winning is None or losing is None:
            raise NotFound(f"reservation referenced by conflict {conflict_id} not found")

        return conflict, winning, losing

    def _claim(self, conflict: ReservationConflict, resolved_by: str, reason: str, status: ConflictStatus) -> None:
        if not self.store.resolve_conflict(conflict.id, resolved_by, reason, status, self.clock()):
            raise InvalidState("conflict is already resolved", code="ALREADY_RESOLVED")

    def _finish(self, conflict: ReservationConflict, action: str, resolved_by: str, reason: str, after=None) -> ReservationConflict:
        resolved = self.get(conflict.id)
        logger.info("Conflict %s resolved as %s by %s", conflict.id, resolved.status.value, resolved_by)
        self.side_effects.audit(resolved_by, action, "conflict", conflict.id, snapshot(conflict), after or snapshot(resolved), reason)
        return resolved
