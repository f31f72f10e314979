#Shared plumbing used by every domain package:
#error taxonomy and environment-driven settings.
#No business logic.

from .errors import (
    FleetError,
    ValidationError,
    NotFound,
    InvalidState,
    PermissionDenied,
    ResourceUnavailable,
    VehicleBusy,
)
from .config import Settings

__all__ = [
    "FleetError",
    "ValidationError",
    "NotFound",
    "InvalidState",
    "PermissionDenied",
    "ResourceUnavailable",
    "VehicleBusy",
    "Settings",
]
