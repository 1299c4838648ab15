import uuid
from decimal import Decimal
from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator
from django.utils import timezone


MONEY = dict(max_digits=10, decimal_places=2)
MULTIPLIER = dict(max_digits=5, decimal_places=2)
COORDINATE = dict(max_digits=9, decimal_places=6)


class VehicleType(models.Model):
    """Pricing profile for one vehicle class (Mini, Sedan, SUV...)."""

    name = models.SlugField(max_length=32, unique=True)
    display_name = models.CharField(max_length=64)

    base_fare = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])
    rate_per_km = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])
    rate_per_min = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])
    minimum_fare = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])
    free_km_threshold = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal('0.00'), validators=[MinValueValidator(0)])

    vehicle_multiplier = models.DecimalField(**MULTIPLIER, default=Decimal('1.00'), validators=[MinValueValidator(0)])
    night_multiplier = models.DecimalField(**MULTIPLIER, default=Decimal('1.25'), validators=[MinValueValidator(1)])
    max_surge_multiplier = models.DecimalField(**MULTIPLIER, default=Decimal('3.00'), validators=[MinValueValidator(1)])
    surge_enabled = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['vehicle_multiplier', 'id']

    def __str__(self):
        return self.display_name


class PricingRule(models.Model):
    rule_key = models.CharField(max_length=64, unique=True)
    rule_value = models.CharField(max_length=255)
    description = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.rule_key}={self.rule_value}"


class Booking(models.Model):
    TYPE_RIDE = 'ride'
    TYPE_SERVICE = 'service'

    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_PENDING_REVIEW = 'pending_review'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_PENDING_REVIEW, 'Pending review'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='bookings')
    provider = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_bookings')
    booking_type = models.CharField(max_length=16, choices=[(TYPE_RIDE, 'Ride'), (TYPE_SERVICE, 'Service')], default=TYPE_RIDE)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)

    scheduled_time = models.DateTimeField()
    estimated_cost = models.DecimalField(**MONEY, default=Decimal('0.00'))
    actual_cost = models.DecimalField(**MONEY, null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.booking_type.title()} booking {self.id} ({self.status})"


class RideDetail(models.Model):
    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name='ride')
    pickup_address = models.CharField(max_length=512)
    pickup_lat = models.DecimalField(**COORDINATE)
    pickup_lng = models.DecimalField(**COORDINATE)
    drop_address = models.CharField(max_length=512)
    drop_lat = models.DecimalField(**COORDINATE)
    drop_lng = models.DecimalField(**COORDINATE)
    vehicle_type = models.ForeignKey(VehicleType, on_delete=models.PROTECT, null=True, blank=True, related_name='rides')
    passenger_count = models.PositiveSmallIntegerField(default=1)

    def __str__(self):
        return f"Ride from {self.pickup_address} to {self.drop_address}"


class BookingRequest(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_DECLINED = 'declined'
    STATUS_EXPIRED = 'expired'

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='requests')
    provider = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, null=True, blank=True, related_name='booking_requests')
    status = models.CharField(max_length=16, choices=[(STATUS_PENDING, 'Pending'), (STATUS_ACCEPTED, 'Accepted'), (STATUS_DECLINED, 'Declined'), (STATUS_EXPIRED, 'Expired')], default=STATUS_PENDING)
    requested_at = models.DateTimeField(default=timezone.now, db_index=True)

    def __str__(self):
        return f"Request {self.pk} for {self.booking_id} ({self.status})"


class FareBreakdown(models.Model):
    """Estimated, actual and final fare for one ride booking."""

    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name='fare_breakdown')
    quote_id = models.UUIDField(db_index=True)
    vehicle_type = models.ForeignKey(VehicleType, on_delete=models.PROTECT, related_name='fare_breakdowns')

    distance_km_est = models.DecimalField(max_digits=8, decimal_places=2)
    time_min_est = models.PositiveIntegerField()
    base_fare_est = models.DecimalField(**MONEY)
    distance_component_est = models.DecimalField(**MONEY)
    time_component_est = models.DecimalField(**MONEY)
    surge_component_est = models.DecimalField(**MONEY)
    night_component_est = models.DecimalField(**MONEY)
    total_fare_est = models.DecimalField(**MONEY)
    surge_multiplier_applied = models.DecimalField(**MULTIPLIER, default=Decimal('1.00'))
    night_hours_applied = models.BooleanField(default=False)
    quote_created_at = models.DateTimeField(default=timezone.now)

    distance_km_act = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    time_min_act = models.PositiveIntegerField(null=True, blank=True)
    base_fare_act = models.DecimalField(**MONEY, null=True, blank=True)
    distance_component_act = models.DecimalField(**MONEY, null=True, blank=True)
    time_component_act = models.DecimalField(**MONEY, null=True, blank=True)
    surge_component_act = models.DecimalField(**MONEY, null=True, blank=True)
    night_component_act = models.DecimalField(**MONEY, null=True, blank=True)
    total_fare_act = models.DecimalField(**MONEY, null=True, blank=True)

    tip_amount = models.DecimalField(**MONEY, default=Decimal('0.00'))
    waiting_charges = models.DecimalField(**MONEY, default=Decimal('0.00'))
    toll_charges = models.DecimalField(**MONEY, default=Decimal('0.00'))
    promo_discount = models.DecimalField(**MONEY, default=Decimal('0.00'))
    final_fare = models.DecimalField(**MONEY, null=True, blank=True)

    trip_started_at = models.DateTimeField(null=True, blank=True)
    trip_ended_at = models.DateTimeField(null=True, blank=True)
    fare_calculated_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"Fare for {self.booking_id}: est {self.total_fare_est} final {self.final_fare}"


class TripLocationLog(models.Model):
    EVENT_TRIP_START = 'trip_start'
    EVENT_LOCATION_UPDATE = 'location_update'
    EVENT_PAUSE = 'pause'
    EVENT_RESUME = 'resume'
    EVENT_TRIP_END = 'trip_end'

    EVENT_CHOICES = [
        (EVENT_TRIP_START, 'Trip start'),
        (EVENT_LOCATION_UPDATE, 'Location update'),
        (EVENT_PAUSE, 'Pause'),
        (EVENT_RESUME, 'Resume'),
        (EVENT_TRIP_END, 'Trip end'),
    ]

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='location_logs')
    provider = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='trip_location_logs')
    event_type = models.CharField(max_length=16, choices=EVENT_CHOICES)
    latitude = models.DecimalField(**COORDINATE, null=True, blank=True)
    longitude = models.DecimalField(**COORDINATE, null=True, blank=True)
    speed_kmh = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    bearing = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    accuracy_meters = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    note = models.CharField(max_length=255, blank=True)
    recorded_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['recorded_at', 'id']

    def __str__(self):
        return f"{self.event_type} for {self.booking_id} at {self.recorded_at}"


class ChatSession(models.Model):
    STATUS_ACTIVE = 'active'
    STATUS_ENDED = 'ended'

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='chat_sessions')
    session_status = models.CharField(max_length=16, choices=[(STATUS_ACTIVE, 'Active'), (STATUS_ENDED, 'Ended')], default=STATUS_ACTIVE)
    last_message_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"Chat {self.pk} for {self.booking_id} ({self.session_status})"
