import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="VehicleType",
            fields=[
                ("id", models.AutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.SlugField(max_length=32, unique=True)),
                ("display_name", models.CharField(max_length=64)),
                ("base_fare", models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ("rate_per_km", models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ("rate_per_min", models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ("minimum_fare", models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ("free_km_threshold", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=6, validators=[django.core.validators.MinValueValidator(0)])),
                ("vehicle_multiplier", models.DecimalField(decimal_places=2, default=Decimal("1.00"), max_digits=5, validators=[django.core.validators.MinValueValidator(0)])),
                ("night_multiplier", models.DecimalField(decimal_places=2, default=Decimal("1.25"), max_digits=5, validators=[django.core.validators.MinValueValidator(1)])),
                ("max_surge_multiplier", models.DecimalField(decimal_places=2, default=Decimal("3.00"), max_digits=5, validators=[django.core.validators.MinValueValidator(1)])),
                ("surge_enabled", models.BooleanField(default=True)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["vehicle_multiplier", "id"],
            },
        ),
        migrations.CreateModel(
            name="PricingRule",
            fields=[
                ("id", models.AutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("rule_key", models.CharField(max_length=64, unique=True)),
                ("rule_value", models.CharField(max_length=255)),
                ("description", models.CharField(blank=True, max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("booking_type", models.CharField(choices=[("ride", "Ride"), ("service", "Service")], default="ride", max_length=16)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("accepted", "Accepted"),
                            ("in_progress", "In progress"),
                            ("completed", "Completed"),
                            ("pending_review", "Pending review"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("scheduled_time", models.DateTimeField()),
                ("estimated_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("actual_cost", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("customer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="bookings", to=settings.AUTH_USER_MODEL)),
                (
                    "provider",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="assigned_bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="RideDetail",
            fields=[
                ("id", models.AutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("pickup_address", models.CharField(max_length=512)),
                ("pickup_lat", models.DecimalField(decimal_places=6, max_digits=9)),
                ("pickup_lng", models.DecimalField(decimal_places=6, max_digits=9)),
                ("drop_address", models.CharField(max_length=512)),
                ("drop_lat", models.DecimalField(decimal_places=6, max_digits=9)),
                ("drop_lng", models.DecimalField(decimal_places=6, max_digits=9)),
                ("passenger_count", models.PositiveSmallIntegerField(default=1)),
                ("booking", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="ride", to="ridehail.booking")),
                (
                    "vehicle_type",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rides",
                        to="ridehail.vehicletype",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="BookingRequest",
            fields=[
                ("id", models.AutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("accepted", "Accepted"), ("declined", "Declined"), ("expired", "Expired")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("requested_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("booking", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="requests", to="ridehail.booking")),
                (
                    "provider",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="booking_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="FareBreakdown",
            fields=[
                ("id", models.AutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quote_id", models.UUIDField(db_index=True)),
                ("distance_km_est", models.DecimalField(decimal_places=2, max_digits=8)),
                ("time_min_est", models.PositiveIntegerField()),
                ("base_fare_est", models.DecimalField(decimal_places=2, max_digits=10)),
                ("distance_component_est", models.DecimalField(decimal_places=2, max_digits=10)),
                ("time_component_est", models.DecimalField(decimal_places=2, max_digits=10)),
                ("surge_component_est", models.DecimalField(decimal_places=2, max_digits=10)),
                ("night_component_est", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_fare_est", models.DecimalField(decimal_places=2, max_digits=10)),
                ("surge_multiplier_applied", models.DecimalField(decimal_places=2, default=Decimal("1.00"), max_digits=5)),
                ("night_hours_applied", models.BooleanField(default=False)),
                ("quote_created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("distance_km_act", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("time_min_act", models.PositiveIntegerField(blank=True, null=True)),
                ("base_fare_act", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("distance_component_act", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("time_component_act", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("surge_component_act", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("night_component_act", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("total_fare_act", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("tip_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("waiting_charges", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("toll_charges", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("promo_discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("final_fare", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("trip_started_at", models.DateTimeField(blank=True, null=True)),
                ("trip_ended_at", models.DateTimeField(blank=True, null=True)),
                ("fare_calculated_at", models.DateTimeField(blank=True, null=True)),
                ("booking", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="fare_breakdown", to="ridehail.booking")),
                ("vehicle_type", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="fare_breakdowns", to="ridehail.vehicletype")),
            ],
        ),
        migrations.CreateModel(
            name="TripLocationLog",
            fields=[
                ("id", models.AutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("trip_start", "Trip start"),
                            ("location_update", "Location update"),
                            ("pause", "Pause"),
                            ("resume", "Resume"),
                            ("trip_end", "Trip end"),
                        ],
                        max_length=16,
                    ),
                ),
                ("latitude", models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ("longitude", models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ("speed_kmh", models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
                ("bearing", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("accuracy_meters", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("recorded_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("booking", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="location_logs", to="ridehail.booking")),
                (
                    "provider",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="trip_location_logs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["recorded_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="ChatSession",
            fields=[
                ("id", models.AutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("session_status", models.CharField(choices=[("active", "Active"), ("ended", "Ended")], default="active", max_length=16)),
                ("last_message_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("booking", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="chat_sessions", to="ridehail.booking")),
            ],
        ),
    ]
