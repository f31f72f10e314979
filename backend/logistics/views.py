from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from common.errors import ValidationError
from dispatch.models import DispatchStatus
from reservations.models import ReservationStatus

from .serializers import (
    AssignSerializer,
    AvailabilityQuerySerializer,
    BookingSerializer,
    ConflictChangeTimeSerializer,
    ConflictReassignSerializer,
    DispatchCreateSerializer,
    DispatchQuerySerializer,
    DispatchStatusSerializer,
    ETAQuerySerializer,
    QuickBoardSerializer,
    ReasonSerializer,
    ReminderSerializer,
    ReservationCreateSerializer,
    ReservationQuerySerializer,
    ReservationUpdateSerializer,
    TimelineQuerySerializer,
)
from .services import get_services


def actor_id(request) -> str:
    """
    Caller identity, set by the API gateway after authentication.
    Role checks have already happened upstream.
    """
    actor = request.headers.get("X-Actor-Id", "").strip()
    if not actor:
        raise ValidationError("X-Actor-Id header is required", code="MISSING_ACTOR")
    return actor


def priority_level(request) -> int:
    raw = request.headers.get("X-Priority-Level", "0").strip() or "0"
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("X-Priority-Level must be an integer")


def validated(serializer_class, data):
    serializer = serializer_class(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer


class BookingViewSet(viewsets.ViewSet):
    """
    Unified booking plus the driver's side of a pending reservation.
    """

    def create(self, request):
        booking = validated(BookingSerializer, request.data)
        result = get_services().bookings.create_booking(booking.to_request(), actor_id(request), priority_level(request))
        return Response(result.to_dict(), status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        """
        Driver accepts a pending_driver reservation on their vehicle.
        """
        reservation = get_services().bookings.driver_accept(pk, actor_id(request))
        return Response(reservation.to_dict())

    @action(detail=True, methods=["post"])
    def decline(self, request, pk=None):
        """
        Driver declines; the booking is offered to the next free vehicle.
        """
        body = validated(ReasonSerializer, request.data)
        reservation = get_services().bookings.driver_decline(pk, actor_id(request), body.validated_data["reason"])
        return Response(reservation.to_dict())

    @action(detail=False, methods=["get"])
    def pending(self, request):
        reservations = get_services().bookings.pending_for_driver(actor_id(request))
        return Response([r.to_dict() for r in reservations])


class ReservationViewSet(viewsets.ViewSet):
    def list(self, request):
        query = validated(ReservationQuerySerializer, request.query_params).validated_data
        reservations = get_services().reservations.list(
            vehicle_id=query.get("vehicle_id"),
            status=ReservationStatus(query["status"]) if query.get("status") else None,
            from_time=query.get("from_time"),
            to_time=query.get("to_time"),
            limit=query["limit"],
            offset=query["offset"],
        )
        return Response([r.to_dict() for r in reservations])

    def retrieve(self, request, pk=None):
        return Response(get_services().reservations.get(pk).to_dict())

    def create(self, request):
        data = validated(ReservationCreateSerializer, request.data).validated_data
        pickup = None
        if data.get("pickup_lat") is not None and data.get("pickup_lng") is not None:
            pickup = (data["pickup_lat"], data["pickup_lng"])

        reservation = get_services().reservations.create(
            data["vehicle_id"],
            data["start_time"],
            data["end_time"],
            data["purpose"],
            requester_id=actor_id(request),
            priority_level=priority_level(request),
            destinations=data.get("destinations"),
            notes=data.get("notes") or None,
            passenger_name=data.get("passenger_name") or None,
            pickup_address=data.get("pickup_address") or None,
            pickup_location=pickup,
        )
        return Response(reservation.to_dict(), status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        changes = validated(ReservationUpdateSerializer, request.data).to_update()
        reservation = get_services().reservations.update(pk, changes, actor_id(request))
        return Response(reservation.to_dict())

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        body = validated(ReasonSerializer, request.data)
        get_services().reservations.cancel(pk, actor_id(request), body.validated_data["reason"])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"])
    def availability(self, request):
        query = validated(AvailabilityQuerySerializer, request.query_params).validated_data
        overlapping = get_services().reservations.check_availability(
            query["vehicle_id"], query["start_time"], query["end_time"],
        )
        return Response({
            "available": not overlapping,
            "conflicts": [r.to_dict() for r in overlapping],
        })

    @action(detail=False, methods=["post"], url_path="send-reminders")
    def send_reminders(self, request):
        """
        Cron hook, once a minute: reminds requesters of bookings starting soon.
        """
        body = validated(ReminderSerializer, request.data).validated_data
        due = get_services().reservations.upcoming_reminders(body.get("minutes_before"))
        return Response({"reminded": len(due)})

    @action(detail=False, methods=["post"], url_path="complete-expired")
    def complete_expired(self, request):
        return Response({"completed": get_services().reservations.complete_expired()})


class ConflictViewSet(viewsets.ViewSet):
    """
    Admin workflow for overlapping reservations.
    """

    def list(self, request):
        return Response([c.to_dict() for c in get_services().conflicts.list_pending()])

    def retrieve(self, request, pk=None):
        return Response(get_services().conflicts.get(pk).to_dict())

    @action(detail=True, methods=["post"])
    def reassign(self, request, pk=None):
        body = validated(ConflictReassignSerializer, request.data).validated_data
        conflict = get_services().conflicts.resolve_reassign(pk, body["vehicle_id"], actor_id(request), body["reason"])
        return Response(conflict.to_dict())

    @action(detail=True, methods=["post"], url_path="change-time")
    def change_time(self, request, pk=None):
        body = validated(ConflictChangeTimeSerializer, request.data).validated_data
        conflict = get_services().conflicts.resolve_change_time(
            pk, body["start_time"], body["end_time"], actor_id(request), body["reason"],
        )
        return Response(conflict.to_dict())

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        body = validated(ReasonSerializer, request.data).validated_data
        conflict = get_services().conflicts.resolve_cancel(pk, actor_id(request), body["reason"])
        return Response(conflict.to_dict())

    @action(detail=True, methods=["post"], url_path="force-assign")
    def force_assign(self, request, pk=None):
        body = validated(ReasonSerializer, request.data).validated_data
        conflict = get_services().conflicts.force_assign(pk, actor_id(request), body["reason"])
        return Response(conflict.to_dict())


class DispatchViewSet(viewsets.ViewSet):
    def list(self, request):
        query = validated(DispatchQuerySerializer, request.query_params).validated_data
        dispatches = get_services().dispatches.list(
            status=DispatchStatus(query["status"]) if query.get("status") else None,
            limit=query["limit"],
            offset=query["offset"],
        )
        return Response([d.to_dict() for d in dispatches])

    def retrieve(self, request, pk=None):
        return Response(get_services().dispatches.get(pk).to_dict())

    def create(self, request):
        body = validated(DispatchCreateSerializer, request.data)
        dispatch = get_services().dispatches.create(body.to_request(), actor_id(request))
        return Response(dispatch.to_dict(), status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        body = validated(AssignSerializer, request.data).validated_data
        dispatch = get_services().dispatches.assign(pk, body["vehicle_id"], actor_id(request))
        return Response(dispatch.to_dict())

    @action(detail=True, methods=["post"], url_path="status")
    def update_status(self, request, pk=None):
        body = validated(DispatchStatusSerializer, request.data).validated_data
        dispatch = get_services().dispatches.update_status(pk, DispatchStatus(body["status"]), actor_id(request))
        return Response(dispatch.to_dict())

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        body = validated(ReasonSerializer, request.data).validated_data
        dispatch = get_services().dispatches.cancel(pk, body["reason"], actor_id(request))
        return Response(dispatch.to_dict())

    @action(detail=False, methods=["post"], url_path="quick-board")
    def quick_board(self, request):
        body = validated(QuickBoardSerializer, request.data)
        dispatch = get_services().dispatches.quick_board(body.to_request(), actor_id(request))
        return Response(dispatch.to_dict(), status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"])
    def current(self, request):
        """
        The calling driver's active trip under "dispatch", null when idle.
        """
        dispatch = get_services().dispatches.current_trip_for_driver(actor_id(request))
        return Response({"dispatch": dispatch.to_dict() if dispatch else None})


class VehicleViewSet(viewsets.ViewSet):
    """
    Read-only fleet views used by dispatchers. Vehicle records are managed elsewhere.
    """

    def list(self, request):
        services = get_services()
        vehicles = services.store.list_vehicles_with_status(services.eta.clock())
        return Response([v.to_dict() for v in vehicles])

    @action(detail=True, methods=["get"])
    def timeline(self, request, pk=None):
        query = validated(TimelineQuerySerializer, request.query_params).validated_data
        reservations = get_services().bookings.vehicle_timeline(pk, query["date"])
        return Response([r.to_dict() for r in reservations])

    @action(detail=False, methods=["get"])
    def eta(self, request):
        query = validated(ETAQuerySerializer, request.query_params).validated_data
        estimates = get_services().eta.estimate((query["lat"], query["lng"]))
        return Response([e.to_dict() for e in estimates])
