#Purpose: Great-circle geometry helpers.
#Straight-line distance between two (lat, lon) points on a spherical Earth.
#No routing, no road network; the OSRM client covers that.

import math
from typing import Tuple

#internal coordinate type :(lat,lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_M = 6371000


def haversine_m(a: LatLon, b: LatLon) -> float:
    """Distance in metres between two (lat, lon) points."""
    lat1, lon1 = a
    lat2, lon2 = b

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def offset(point: LatLon, d_lat: float, d_lon: float) -> LatLon:
    return (point[0] + d_lat, point[1] + d_lon)
