import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Vehicle",
            fields=[
                ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("license_plate", models.CharField(blank=True, default="", max_length=32)),
                ("driver_id", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("is_maintenance", models.BooleanField(default=False)),
                ("latitude", models.FloatField(blank=True, null=True)),
                ("longitude", models.FloatField(blank=True, null=True)),
                ("location_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["name", "id"],
            },
        ),
        migrations.CreateModel(
            name="Dispatch",
            fields=[
                ("id", models.CharField(max_length=36, primary_key=True, serialize=False)),
                ("requester_id", models.CharField(max_length=64)),
                ("dispatcher_id", models.CharField(blank=True, max_length=64, null=True)),
                ("purpose", models.CharField(max_length=255)),
                ("passenger_name", models.CharField(blank=True, max_length=255, null=True)),
                ("passenger_count", models.PositiveIntegerField(default=1)),
                ("notes", models.TextField(blank=True, null=True)),
                ("pickup_address", models.TextField()),
                ("pickup_lat", models.FloatField(blank=True, null=True)),
                ("pickup_lng", models.FloatField(blank=True, null=True)),
                ("dropoff_address", models.TextField(blank=True, null=True)),
                ("dropoff_lat", models.FloatField(blank=True, null=True)),
                ("dropoff_lng", models.FloatField(blank=True, null=True)),
                ("estimated_end_at", models.DateTimeField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("assigned", "Assigned"),
                            ("accepted", "Accepted by Driver"),
                            ("en_route", "En Route"),
                            ("arrived", "Arrived"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("assigned_at", models.DateTimeField(blank=True, null=True)),
                ("accepted_at", models.DateTimeField(blank=True, null=True)),
                ("en_route_at", models.DateTimeField(blank=True, null=True)),
                ("arrived_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "vehicle",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="dispatches",
                        to="logistics.vehicle",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Reservation",
            fields=[
                ("id", models.CharField(max_length=36, primary_key=True, serialize=False)),
                ("requester_id", models.CharField(max_length=64)),
                ("start_time", models.DateTimeField()),
                ("end_time", models.DateTimeField()),
                ("purpose", models.CharField(max_length=255)),
                ("destinations", models.JSONField(default=list)),
                ("notes", models.TextField(blank=True, null=True)),
                ("passenger_name", models.CharField(blank=True, max_length=255, null=True)),
                ("pickup_address", models.TextField(blank=True, null=True)),
                ("pickup_lat", models.FloatField(blank=True, null=True)),
                ("pickup_lng", models.FloatField(blank=True, null=True)),
                ("priority_level", models.IntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("confirmed", "Confirmed"),
                            ("pending_conflict", "Pending Conflict"),
                            ("pending_driver", "Pending Driver"),
                            ("driver_declined", "Declined by Drivers"),
                            ("cancelled", "Cancelled"),
                            ("completed", "Completed"),
                        ],
                        default="confirmed",
                        max_length=20,
                    ),
                ),
                ("declined_vehicle_ids", models.JSONField(default=list)),
                ("cancel_reason", models.TextField(blank=True, null=True)),
                ("cancelled_by", models.CharField(blank=True, max_length=64, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "vehicle",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reservations",
                        to="logistics.vehicle",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["vehicle", "start_time"], name="reservation_vehicle_start_idx"),
                    models.Index(fields=["status", "start_time"], name="reservation_status_start_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReservationConflict",
            fields=[
                ("id", models.CharField(max_length=36, primary_key=True, serialize=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("resolved_reassign", "Resolved by Reassignment"),
                            ("resolved_changed", "Resolved by Time Change"),
                            ("resolved_cancelled", "Resolved by Cancellation"),
                            ("force_assigned", "Force Assigned"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("resolved_by", models.CharField(blank=True, max_length=64, null=True)),
                ("resolution_reason", models.TextField(blank=True, null=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "losing_reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lost_conflicts",
                        to="logistics.reservation",
                    ),
                ),
                (
                    "winning_reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="won_conflicts",
                        to="logistics.reservation",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("actor_id", models.CharField(max_length=64)),
                ("action", models.CharField(max_length=64)),
                ("target_type", models.CharField(max_length=32)),
                ("target_id", models.CharField(max_length=64)),
                ("before", models.JSONField(blank=True, null=True)),
                ("after", models.JSONField(blank=True, null=True)),
                ("reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["target_type", "target_id"], name="audit_target_idx")],
            },
        ),
    ]
