"""
Purpose: Central configuration for booking and dispatch defaults.
What it does:

Stores the tunable fallbacks used when a request leaves fields empty:

QUICK_BOARD_PURPOSE = "Boarding"
QUICK_BOARD_PICKUP_ADDRESS = "(route not set)"
DEFAULT_PASSENGER_COUNT = 1
DEFAULT_LIST_LIMIT = 50

Rule: No logic here: just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BookingPolicy:
    """
    Defaults applied by the dispatch lifecycle and the booking orchestrator.
    """

    # --- Quick board ---
    # Walk-up passengers rarely state a purpose or a pickup; the trip is
    # already at the vehicle, so these only label the record.
    quick_board_purpose: str = "Boarding"
    quick_board_pickup_address: str = "(route not set)"

    default_passenger_count: int = 1

    # --- Listing ---
    default_list_limit: int = 50
    max_list_limit: int = 200

    def validate(self) -> None:
        if not self.quick_board_purpose:
            raise ValueError("quick_board_purpose must not be empty")

        if not self.quick_board_pickup_address:
            raise ValueError("quick_board_pickup_address must not be empty")

        if self.default_passenger_count < 1:
            raise ValueError("default_passenger_count must be >= 1")

        if not (0 < self.default_list_limit <= self.max_list_limit):
            raise ValueError("default_list_limit must be in (0, max_list_limit]")

    def clamp_limit(self, limit: int) -> int:
        if limit <= 0:
            return self.default_list_limit
        return min(limit, self.max_list_limit)


def default_booking_policy() -> BookingPolicy:
    p = BookingPolicy()
    p.validate()
    return p
