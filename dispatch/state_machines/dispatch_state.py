"""
Purpose: Transition rules for a single immediate trip.

    pending -> assigned -> accepted -> en_route -> arrived -> completed
    cancelled is reachable from every non-terminal state.

The ensure_* guards raise on illegal transitions; the apply_* helpers mutate
a Dispatch record in place and are what stores use to persist a transition.
Progress updates (accepted .. completed) are not forced into order: callers
drive them in sequence, the rules only refuse to move a finished trip.
"""

from datetime import datetime

from common.errors import InvalidState, ValidationError
from dispatch.models import Dispatch, DispatchStatus

# Status -> the timestamp attribute stamped when a trip enters it
PROGRESS_TIMESTAMPS = {
    DispatchStatus.ACCEPTED: "accepted_at",
    DispatchStatus.EN_ROUTE: "en_route_at",
    DispatchStatus.ARRIVED: "arrived_at",
    DispatchStatus.COMPLETED: "completed_at",
}


def ensure_assignable(dispatch: Dispatch) -> None:
    if dispatch.status != DispatchStatus.PENDING:
        raise InvalidState("dispatch is not in pending status")


def ensure_progressable(dispatch: Dispatch, new_status: DispatchStatus) -> None:
    """
    Checks more than that the dispatch exists:
    - the target must be a progress status (accepted, en_route, arrived, completed);
      pending and assigned are only reached through create and assign
    - a completed or cancelled trip never moves again
    Order among the progress statuses is still not enforced.
    """
    if new_status not in PROGRESS_TIMESTAMPS:
        raise ValidationError(
            f"status must be one of {[status.value for status in PROGRESS_TIMESTAMPS]}, got {new_status.value}",
            code="INVALID_STATUS_VALUE",
        )

    if dispatch.is_terminal:
        raise InvalidState(f"dispatch {dispatch.id} is already {dispatch.status.value}")


def ensure_cancellable(dispatch: Dispatch) -> None:
    if dispatch.is_terminal:
        raise InvalidState(f"dispatch {dispatch.id} is already {dispatch.status.value} and cannot be cancelled")


def apply_assignment(dispatch: Dispatch, vehicle_id: str, dispatcher_id: str, at: datetime) -> Dispatch:
    dispatch.vehicle_id = vehicle_id
    dispatch.dispatcher_id = dispatcher_id
    dispatch.status = DispatchStatus.ASSIGNED
    dispatch.assigned_at = at
    return dispatch


def apply_status(dispatch: Dispatch, new_status: DispatchStatus, at: datetime) -> Dispatch:
    dispatch.status = new_status
    timestamp_field = PROGRESS_TIMESTAMPS.get(new_status)
    if timestamp_field:
        setattr(dispatch, timestamp_field, at)
    return dispatch


def apply_cancellation(dispatch: Dispatch, reason: str, at: datetime) -> Dispatch:
    dispatch.status = DispatchStatus.CANCELLED
    dispatch.cancelled_at = at
    dispatch.cancel_reason = reason
    return dispatch
