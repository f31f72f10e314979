"""
Purpose: Typed failures surfaced by the booking engine.
What it does:
Every component raises one of these instead of returning error codes.
Each carries a stable machine `code` and the HTTP status the REST layer maps it to.
"""

from __future__ import annotations

from typing import Optional


class FleetError(Exception):
    """Base class for every failure the engine reports to its caller."""

    code: str = "INTERNAL_ERROR"
    status: int = 500
    default_message: str = "internal error"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(FleetError):
    """Malformed time window, missing required field, empty mandatory reason."""
    code = "BAD_REQUEST"
    status = 400
    default_message = "invalid request"


class NotFound(FleetError):
    code = "NOT_FOUND"
    status = 404
    default_message = "resource not found"


class InvalidState(FleetError):
    """Requested transition is illegal for the entity's current status."""
    code = "INVALID_STATUS"
    status = 400
    default_message = "invalid status for this operation"


class PermissionDenied(FleetError):
    """The calling driver does not drive the vehicle the booking is on."""
    code = "NOT_YOUR_VEHICLE"
    status = 403
    default_message = "this reservation is not assigned to your vehicle"


class ResourceUnavailable(FleetError):
    code = "NO_VEHICLE_AVAILABLE"
    status = 404
    default_message = "no vehicles available for this time slot"


class VehicleBusy(FleetError):
    code = "VEHICLE_BUSY"
    status = 400
    default_message = "vehicle already has an active trip"
