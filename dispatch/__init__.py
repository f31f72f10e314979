#Immediate trips and the unified booking entry point:
#Models (Dispatch, BookingRequest / BookingResult)
#Lifecycle service (the dispatch state machine)
#Booking orchestrator (now vs. later, specific vs. any vehicle, decline cascade)

from .models import (
    ACTIVE_DISPATCH_STATUSES,
    BookingMode,
    BookingRequest,
    BookingResult,
    Dispatch,
    DispatchRequest,
    DispatchStatus,
    QuickBoardRequest,
)
from .policy import BookingPolicy, default_booking_policy
from .lifecycle import DispatchStateMachine
from .booking import BookingOrchestrator

__all__ = [
    "ACTIVE_DISPATCH_STATUSES",
    "BookingMode",
    "BookingRequest",
    "BookingResult",
    "Dispatch",
    "DispatchRequest",
    "DispatchStatus",
    "QuickBoardRequest",
    "BookingPolicy",
    "default_booking_policy",
    "DispatchStateMachine",
    "BookingOrchestrator",
]
