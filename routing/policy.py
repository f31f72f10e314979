"""
Purpose: Central configuration for the geometric ETA estimate.
What it does:

Stores the tunable numbers behind "vehicle arrives in X":

REFERENCE_POINT = (14.5547, 121.0244)      # where position-less vehicles are drawn
FALLBACK_OFFSETS = 5 small (d_lat, d_lon) steps, cycled by list position
SPEED_KMH = 15 .. 25                       # congested urban traffic
MIN_DURATION_SECONDS = 60 (+ up to 120 s jitter when the floor applies)

Rule: No logic here: just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from common.config import Settings


@dataclass(frozen=True)
class ETAPolicy:
    # --- Fallback position ---
    # Vehicles without a fresh GPS fix are placed around this point, each one
    # nudged by an offset so they don't collapse onto a single marker.
    reference_lat: float = 14.5547
    reference_lon: float = 121.0244
    fallback_offsets: List[Tuple[float, float]] = field(
        default_factory=lambda: [(0.005, 0.003), (-0.003, 0.008), (0.008, -0.004), (-0.006, -0.006), (0.002, 0.012)]
    )

    # --- Speed ---
    # Average speed is drawn uniformly from this range per vehicle
    min_speed_kmh: float = 15.0
    max_speed_kmh: float = 25.0

    # --- Floor ---
    # Anything closer than this is reported as floor + random jitter, so a
    # vehicle parked next to the pickup never shows "0 min".
    min_duration_seconds: int = 60
    floor_jitter_seconds: int = 120

    def validate(self) -> None:
        if not self.fallback_offsets:
            raise ValueError("fallback_offsets must not be empty")

        if not (0 < self.min_speed_kmh <= self.max_speed_kmh):
            raise ValueError("speed range must satisfy 0 < min_speed_kmh <= max_speed_kmh")

        if self.min_duration_seconds < 0:
            raise ValueError("min_duration_seconds must be >= 0")

        if self.floor_jitter_seconds <= 0:
            raise ValueError("floor_jitter_seconds must be > 0")

    @property
    def reference_point(self) -> Tuple[float, float]:
        return (self.reference_lat, self.reference_lon)


def default_eta_policy() -> ETAPolicy:
    p = ETAPolicy()
    p.validate()
    return p


def eta_policy_from_settings(settings: Settings) -> ETAPolicy:
    p = ETAPolicy(reference_lat=settings.eta_reference_lat, reference_lon=settings.eta_reference_lon)
    p.validate()
    return p
