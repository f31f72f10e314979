from django.db import models
from django.utils import timezone


class Vehicle(models.Model):
    """
    A fleet vehicle. Fleet administration owns these rows;
    the booking engine only reads them and locks them.
    """
    id = models.CharField(primary_key=True, max_length=64)
    name = models.CharField(max_length=255)
    license_plate = models.CharField(max_length=32, blank=True, default="")

    # Driver identity comes from the auth service, so it's a plain id here
    driver_id = models.CharField(max_length=64, blank=True, null=True, unique=True)
    is_maintenance = models.BooleanField(default=False)

    # Last GPS fix reported by the driver app
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)
    location_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["name", "id"]

    def __str__(self):
        return f"{self.name} ({self.license_plate})"


class Dispatch(models.Model):
    """
    Immediate trip.
    Tracks lifecycle: Pending -> Assigned -> Accepted -> En route -> Arrived -> Completed.
    """
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        ASSIGNED = "assigned", "Assigned"
        ACCEPTED = "accepted", "Accepted by Driver"
        EN_ROUTE = "en_route", "En Route"
        ARRIVED = "arrived", "Arrived"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    id = models.CharField(primary_key=True, max_length=36)
    # Vehicle is set only once a dispatcher (or quick board) assigns one
    vehicle = models.ForeignKey(Vehicle, on_delete=models.SET_NULL, null=True, blank=True, related_name="dispatches")
    requester_id = models.CharField(max_length=64)
    dispatcher_id = models.CharField(max_length=64, blank=True, null=True)

    purpose = models.CharField(max_length=255)
    passenger_name = models.CharField(max_length=255, blank=True, null=True)
    passenger_count = models.PositiveIntegerField(default=1)
    notes = models.TextField(blank=True, null=True)

    pickup_address = models.TextField()
    pickup_lat = models.FloatField(blank=True, null=True)
    pickup_lng = models.FloatField(blank=True, null=True)
    dropoff_address = models.TextField(blank=True, null=True)
    dropoff_lat = models.FloatField(blank=True, null=True)
    dropoff_lng = models.FloatField(blank=True, null=True)
    estimated_end_at = models.DateTimeField(blank=True, null=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    assigned_at = models.DateTimeField(blank=True, null=True)
    accepted_at = models.DateTimeField(blank=True, null=True)
    en_route_at = models.DateTimeField(blank=True, null=True)
    arrived_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancel_reason = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Dispatch #{self.id} - {self.status}"


class Reservation(models.Model):
    """
    Scheduled trip on one vehicle for [start_time, end_time).
    """
    class Status(models.TextChoices):
        CONFIRMED = "confirmed", "Confirmed"
        PENDING_CONFLICT = "pending_conflict", "Pending Conflict"
        PENDING_DRIVER = "pending_driver", "Pending Driver"
        DRIVER_DECLINED = "driver_declined", "Declined by Drivers"
        CANCELLED = "cancelled", "Cancelled"
        COMPLETED = "completed", "Completed"

    id = models.CharField(primary_key=True, max_length=36)
    vehicle = models.ForeignKey(Vehicle, on_delete=models.PROTECT, related_name="reservations")
    requester_id = models.CharField(max_length=64)

    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    purpose = models.CharField(max_length=255)
    # Ordered list of stop addresses
    destinations = models.JSONField(default=list)
    notes = models.TextField(blank=True, null=True)
    passenger_name = models.CharField(max_length=255, blank=True, null=True)
    pickup_address = models.TextField(blank=True, null=True)
    pickup_lat = models.FloatField(blank=True, null=True)
    pickup_lng = models.FloatField(blank=True, null=True)

    priority_level = models.IntegerField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CONFIRMED)
    # Vehicles whose drivers declined, in decline order, no duplicates
    declined_vehicle_ids = models.JSONField(default=list)
    cancel_reason = models.TextField(blank=True, null=True)
    cancelled_by = models.CharField(max_length=64, blank=True, null=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["vehicle", "start_time"], name="reservation_vehicle_start_idx"),
            models.Index(fields=["status", "start_time"], name="reservation_status_start_idx"),
        ]

    def __str__(self):
        return f"Reservation #{self.id} - {self.status}"


class ReservationConflict(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        RESOLVED_REASSIGN = "resolved_reassign", "Resolved by Reassignment"
        RESOLVED_CHANGED = "resolved_changed", "Resolved by Time Change"
        RESOLVED_CANCELLED = "resolved_cancelled", "Resolved by Cancellation"
        FORCE_ASSIGNED = "force_assigned", "Force Assigned"

    id = models.CharField(primary_key=True, max_length=36)
    winning_reservation = models.ForeignKey(Reservation, on_delete=models.CASCADE, related_name="won_conflicts")
    losing_reservation = models.ForeignKey(Reservation, on_delete=models.CASCADE, related_name="lost_conflicts")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    resolved_by = models.CharField(max_length=64, blank=True, null=True)
    resolution_reason = models.TextField(blank=True, null=True)
    resolved_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"Conflict {self.winning_reservation_id} over {self.losing_reservation_id} ({self.status})"


class AuditLogEntry(models.Model):
    actor_id = models.CharField(max_length=64)
    action = models.CharField(max_length=64)
    target_type = models.CharField(max_length=32)
    target_id = models.CharField(max_length=64)
    before = models.JSONField(blank=True, null=True)
    after = models.JSONField(blank=True, null=True)
    reason = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["target_type", "target_id"], name="audit_target_idx")]

    def __str__(self):
        return f"{self.action} on {self.target_type}/{self.target_id} by {self.actor_id}"
