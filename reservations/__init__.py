"""
Reservations domain package.

Public API:
- Domain models: Reservation, ReservationConflict, TimeWindow, DeclinedVehicles
- Statuses: ReservationStatus, ConflictStatus

Services live in their own modules so callers import them explicitly:
reservations.manager.ReservationManager, reservations.conflicts.ConflictResolver
"""
from .models import (
    BLOCKING_STATUSES,
    OCCUPYING_STATUSES,
    ConflictStatus,
    DeclinedVehicles,
    Reservation,
    ReservationConflict,
    ReservationStatus,
    ReservationUpdate,
    TimeWindow,
    windows_overlap,
)

__all__ = [
    "BLOCKING_STATUSES",
    "OCCUPYING_STATUSES",
    "ConflictStatus",
    "DeclinedVehicles",
    "Reservation",
    "ReservationConflict",
    "ReservationStatus",
    "ReservationUpdate",
    "TimeWindow",
    "windows_overlap",
]
