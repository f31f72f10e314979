"""
Purpose: Environment-driven settings.
What it does:
Reads the .env file once and exposes the values the engine's adapters need
(OSRM base URL, push gateway, ETA reference point, thresholds).

Example .env:
    BASE_URL=http://router.project-osrm.org
    PUSH_GATEWAY_URL=http://localhost:9000/push
    PUSH_WORKERS=4
    ETA_REFERENCE_LAT=14.5547
    ETA_REFERENCE_LON=121.0244
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    osrm_base_url: Optional[str] = None
    push_gateway_url: Optional[str] = None
    push_timeout_seconds: int = 5
    # Threads delivering push calls off the request thread
    push_workers: int = 4

    # Fallback centre for vehicles without a usable GPS fix (Manila CBD)
    eta_reference_lat: float = 14.5547
    eta_reference_lon: float = 121.0244

    location_stale_seconds: int = 120
    reservation_reminder_minutes: int = 30
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            osrm_base_url=os.getenv("BASE_URL") or None,
            push_gateway_url=os.getenv("PUSH_GATEWAY_URL") or None,
            push_timeout_seconds=_get_int("PUSH_TIMEOUT_SECONDS", 5),
            push_workers=_get_int("PUSH_WORKERS", 4),
            eta_reference_lat=_get_float("ETA_REFERENCE_LAT", 14.5547),
            eta_reference_lon=_get_float("ETA_REFERENCE_LON", 121.0244),
            location_stale_seconds=_get_int("LOCATION_STALE_SECONDS", 120),
            reservation_reminder_minutes=_get_int("RESERVATION_REMINDER_MINUTES", 30),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
