"""
Purpose: Central configuration for vehicle status derivation.
What it does:

Stores the tunable thresholds used when deciding whether a vehicle's
reported position can still be trusted:

LOCATION_STALE_SECONDS = 120

Rule: No logic here: just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FleetPolicy:
    # A GPS fix older than this is treated as unknown position
    location_stale_seconds: int = 120

    def validate(self) -> None:
        if self.location_stale_seconds <= 0:
            raise ValueError("location_stale_seconds must be > 0")


def default_fleet_policy() -> FleetPolicy:
    p = FleetPolicy()
    p.validate()
    return p
