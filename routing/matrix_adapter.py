"""
Purpose: Road-network pickup durations for the ETA estimator.
What it does:
Adapts routing.osrm_client.OSRMClient into a callable

    provider(origins, pickup) -> [seconds or None per origin]

backed by one OSRM /table request (origins x [pickup]), with a small cache
so repeated lookups for parked vehicles don't hit OSRM again.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

LatLon = Tuple[float, float]


class PickupDurationProvider:
    def __init__(self, osrm_client):
        self.osrm_client = osrm_client
        self._cache: Dict[Tuple[float, float, float, float], float] = {}

    def __call__(self, origins: List[LatLon], pickup: LatLon) -> List[Optional[float]]:
        if not origins:
            return []

        result: List[Optional[float]] = [None] * len(origins)
        missing = []

        for idx, origin in enumerate(origins):
            key = (origin[0], origin[1], pickup[0], pickup[1])
            if key in self._cache:
                result[idx] = self._cache[key]
            else:
                missing.append(idx)

        if missing:
            table = self.osrm_client.compute_table([origins[i] for i in missing], [pickup])
            durations = table.get("durations", [])

            for row, idx in enumerate(missing):
                if row >= len(durations) or not durations[row]:
                    continue
                duration = durations[row][0]
                if duration is not None:
                    origin = origins[idx]
                    self._cache[(origin[0], origin[1], pickup[0], pickup[1])] = float(duration)
                    result[idx] = float(duration)

        return result

    def clear(self) -> None:
        self._cache.clear()


def pickup_duration_provider_from_osrm_client(osrm_client) -> PickupDurationProvider:
    return PickupDurationProvider(osrm_client)
