from rest_framework import serializers

from dispatch.models import BookingMode, BookingRequest, DispatchRequest, DispatchStatus, QuickBoardRequest
from reservations.models import ReservationStatus, ReservationUpdate


def _point(data, lat_key, lng_key):
    lat, lng = data.get(lat_key), data.get(lng_key)
    if lat is None or lng is None:
        return None
    return (lat, lng)


class BookingSerializer(serializers.Serializer):
    """
    Unified booking input. Time window is required when is_now is false;
    the engine enforces that so the error code stays MISSING_TIME.
    """
    mode = serializers.ChoiceField(choices=[m.value for m in BookingMode])
    is_now = serializers.BooleanField()
    vehicle_id = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    start_time = serializers.DateTimeField(required=False, allow_null=True)
    end_time = serializers.DateTimeField(required=False, allow_null=True)
    purpose = serializers.CharField(max_length=255)
    pickup_address = serializers.CharField()
    pickup_lat = serializers.FloatField(required=False, allow_null=True)
    pickup_lng = serializers.FloatField(required=False, allow_null=True)
    destinations = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    passenger_name = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def to_request(self) -> BookingRequest:
        data = self.validated_data
        return BookingRequest(
            mode=BookingMode(data["mode"]),
            is_now=data["is_now"],
            purpose=data["purpose"],
            pickup_address=data["pickup_address"],
            vehicle_id=data.get("vehicle_id") or None,
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            pickup_location=_point(data, "pickup_lat", "pickup_lng"),
            destinations=list(data.get("destinations") or []),
            passenger_name=data.get("passenger_name") or None,
            notes=data.get("notes") or None,
        )


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class ReservationCreateSerializer(serializers.Serializer):
    vehicle_id = serializers.CharField()
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    purpose = serializers.CharField(max_length=255)
    destinations = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    passenger_name = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    pickup_address = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    pickup_lat = serializers.FloatField(required=False, allow_null=True)
    pickup_lng = serializers.FloatField(required=False, allow_null=True)


class ReservationUpdateSerializer(serializers.Serializer):
    vehicle_id = serializers.CharField(required=False)
    start_time = serializers.DateTimeField(required=False)
    end_time = serializers.DateTimeField(required=False)
    purpose = serializers.CharField(required=False, max_length=255)
    destinations = serializers.ListField(child=serializers.CharField(), required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def to_update(self) -> ReservationUpdate:
        return ReservationUpdate(**self.validated_data)


class ReservationQuerySerializer(serializers.Serializer):
    vehicle_id = serializers.CharField(required=False)
    status = serializers.ChoiceField(choices=[s.value for s in ReservationStatus], required=False)
    from_time = serializers.DateTimeField(required=False)
    to_time = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(required=False, default=0)
    offset = serializers.IntegerField(required=False, default=0, min_value=0)


class AvailabilityQuerySerializer(serializers.Serializer):
    vehicle_id = serializers.CharField()
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()


class TimelineQuerySerializer(serializers.Serializer):
    date = serializers.DateField()


class ReminderSerializer(serializers.Serializer):
    minutes_before = serializers.IntegerField(required=False, min_value=1)


class ConflictReassignSerializer(serializers.Serializer):
    vehicle_id = serializers.CharField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class ConflictChangeTimeSerializer(serializers.Serializer):
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class DispatchCreateSerializer(serializers.Serializer):
    purpose = serializers.CharField(max_length=255)
    pickup_address = serializers.CharField()
    passenger_name = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    passenger_count = serializers.IntegerField(required=False, default=1, min_value=1)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    pickup_lat = serializers.FloatField(required=False, allow_null=True)
    pickup_lng = serializers.FloatField(required=False, allow_null=True)
    dropoff_address = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    dropoff_lat = serializers.FloatField(required=False, allow_null=True)
    dropoff_lng = serializers.FloatField(required=False, allow_null=True)

    def to_request(self) -> DispatchRequest:
        data = self.validated_data
        return DispatchRequest(
            purpose=data["purpose"],
            pickup_address=data["pickup_address"],
            passenger_name=data.get("passenger_name") or None,
            passenger_count=data["passenger_count"],
            notes=data.get("notes") or None,
            pickup_location=_point(data, "pickup_lat", "pickup_lng"),
            dropoff_address=data.get("dropoff_address") or None,
            dropoff_location=_point(data, "dropoff_lat", "dropoff_lng"),
        )


class DispatchQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s.value for s in DispatchStatus], required=False)
    limit = serializers.IntegerField(required=False, default=0)
    offset = serializers.IntegerField(required=False, default=0, min_value=0)


class AssignSerializer(serializers.Serializer):
    vehicle_id = serializers.CharField()


class DispatchStatusSerializer(serializers.Serializer):
    # Any status parses; the state machine decides which ones are legal
    status = serializers.ChoiceField(choices=[s.value for s in DispatchStatus])


class QuickBoardSerializer(serializers.Serializer):
    vehicle_id = serializers.CharField()
    passenger_name = serializers.CharField()
    passenger_count = serializers.IntegerField(required=False, default=0)
    purpose = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    estimated_minutes = serializers.IntegerField(required=False, default=0, min_value=0)

    def to_request(self) -> QuickBoardRequest:
        data = self.validated_data
        return QuickBoardRequest(
            vehicle_id=data["vehicle_id"],
            passenger_name=data["passenger_name"],
            passenger_count=data["passenger_count"],
            purpose=data["purpose"],
            notes=data.get("notes") or None,
            estimated_minutes=data["estimated_minutes"],
        )


class ETAQuerySerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
