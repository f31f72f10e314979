#Purpose: ETA estimation for the dispatcher's "which vehicle is closest" view.
#Converts vehicle positions into per-vehicle arrival estimates for one pickup.
#Typical responsibilities:
#Pick a position per vehicle (live GPS fix, or a fallback near the reference point)
#Straight-line distance → duration at a sampled urban speed
#Floor tiny durations so nobody shows "arrives in 0 min"
#Prefer road-network durations when a provider (OSRM /table) is injected
#The speed sampler is an injected random.Random, so a seeded one gives exact outputs.

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from common.clock import Clock, utc_now
from fleet.models import VehicleStatus, VehicleWithStatus
from fleet.policy import FleetPolicy, default_fleet_policy
from fleet.selection import has_fresh_location

from .geo import LatLon, haversine_m, offset
from .osrm_client import OSRMError
from .policy import ETAPolicy, default_eta_policy

logger = logging.getLogger(__name__)

DurationProvider = Callable[[List[LatLon], LatLon], List[Optional[float]]]


@dataclass(frozen=True)
class VehicleETA:
    vehicle_id: str
    vehicle_name: str
    license_plate: str
    status: VehicleStatus
    lat: float
    lon: float
    distance_m: int
    duration_sec: int
    is_available: bool
    position_is_fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "vehicle_id": self.vehicle_id,
            "vehicle_name": self.vehicle_name,
            "license_plate": self.license_plate,
            "status": self.status.value,
            "latitude": self.lat,
            "longitude": self.lon,
            "distance_m": self.distance_m,
            "duration_sec": self.duration_sec,
            "is_available": self.is_available,
            "position_is_fallback": self.position_is_fallback,
        }


class ETAEstimator:
    def __init__(
        self,
        vehicle_store,
        *,
        policy: Optional[ETAPolicy] = None,
        fleet_policy: Optional[FleetPolicy] = None,
        rng: Optional[random.Random] = None,
        duration_provider: Optional[DurationProvider] = None,
        clock: Clock = utc_now,
    ):
        self.vehicle_store = vehicle_store
        self.policy = policy or default_eta_policy()
        self.fleet_policy = fleet_policy or default_fleet_policy()
        self.rng = rng or random.Random()
        self.duration_provider = duration_provider
        self.clock = clock

    def estimate(self, pickup: LatLon) -> List[VehicleETA]:
        now = self.clock()
        return self.estimate_vehicles(pickup, self.vehicle_store.list_vehicles_with_status(now), now)

    def estimate_vehicles(self, pickup: LatLon, vehicles: Sequence[VehicleWithStatus], now: datetime) -> List[VehicleETA]:
        """
        One estimate per vehicle, fastest first. Ties keep the input order.
        """
        positions = [self._position_for(idx, item, now) for idx, item in enumerate(vehicles)]
        road_durations = self._road_durations(positions, pickup)

        results = []
        for item, (position, is_fallback), road_duration in zip(vehicles, positions, road_durations):
            distance_m = haversine_m(position, pickup)

            # Sampled for every vehicle so a seeded rng stays aligned whether or not OSRM answers
            speed_kmh = self.rng.uniform(self.policy.min_speed_kmh, self.policy.max_speed_kmh)
            duration_sec = round(distance_m / (speed_kmh * 1000 / 3600))
            if road_duration is not None:
                duration_sec = round(road_duration)

            if duration_sec < self.policy.min_duration_seconds:
                duration_sec = self.policy.min_duration_seconds + self.rng.randrange(self.policy.floor_jitter_seconds)

            results.append(
                VehicleETA(
                    vehicle_id=item.id,
                    vehicle_name=item.name,
                    license_plate=item.vehicle.license_plate,
                    status=item.status,
                    lat=position[0],
                    lon=position[1],
                    distance_m=round(distance_m),
                    duration_sec=duration_sec,
                    is_available=item.status == VehicleStatus.AVAILABLE,
                    position_is_fallback=is_fallback,
                )
            )

        results.sort(key=lambda eta: eta.duration_sec)
        return results

    def _position_for(self, idx: int, item: VehicleWithStatus, now: datetime) -> Tuple[LatLon, bool]:
        if has_fresh_location(item.vehicle, now, self.fleet_policy):
            return item.vehicle.location, False

        offsets = self.policy.fallback_offsets
        d_lat, d_lon = offsets[idx % len(offsets)]
        return offset(self.policy.reference_point, d_lat, d_lon), True

    def _road_durations(self, positions: List[Tuple[LatLon, bool]], pickup: LatLon) -> List[Optional[float]]:
        durations: List[Optional[float]] = [None] * len(positions)
        if self.duration_provider is None:
            return durations

        # Only real fixes are worth routing; fallback points are made up
        live = [idx for idx, (_, is_fallback) in enumerate(positions) if not is_fallback]
        if not live:
            return durations

        try:
            routed = self.duration_provider([positions[idx][0] for idx in live], pickup)
        except OSRMError:
            logger.warning("Road durations unavailable, using straight-line estimate", exc_info=True)
            return durations

        for idx, duration in zip(live, routed):
            durations[idx] = duration
        return durations
