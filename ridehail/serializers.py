from rest_framework import serializers
from .models import Booking, RideDetail, VehicleType


class LocationSerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    address = serializers.CharField(max_length=512, required=False, allow_blank=True)


class RideQuoteSerializer(serializers.Serializer):
    pickup = LocationSerializer()
    drop = LocationSerializer()
    vehicle_type_id = serializers.IntegerField(min_value=1)
    pickup_time = serializers.DateTimeField()
    passenger_count = serializers.IntegerField(min_value=1, default=1)


class QuoteValidateSerializer(serializers.Serializer):
    quote_id = serializers.CharField(max_length=64)


class VehicleTypeSerializer(serializers.ModelSerializer):
    pricing = serializers.SerializerMethodField()
    multipliers = serializers.SerializerMethodField()
    description = serializers.SerializerMethodField()

    class Meta:
        model = VehicleType
        fields = ['id', 'name', 'display_name', 'pricing', 'multipliers', 'surge_enabled', 'description']

    def get_pricing(self, obj):
        return {
            'base_fare': float(obj.base_fare),
            'rate_per_km': float(obj.rate_per_km),
            'rate_per_min': float(obj.rate_per_min),
            'minimum_fare': float(obj.minimum_fare),
            'free_km_threshold': float(obj.free_km_threshold),
        }

    def get_multipliers(self, obj):
        return {
            'vehicle': float(obj.vehicle_multiplier),
            'night': float(obj.night_multiplier),
            'max_surge': float(obj.max_surge_multiplier),
        }

    def get_description(self, obj):
        return f"Starting at {obj.base_fare} + {obj.rate_per_km}/km + {obj.rate_per_min}/min"


class CreateRideBookingSerializer(serializers.Serializer):
    pickup_address = serializers.CharField(max_length=512)
    pickup_lat = serializers.FloatField(min_value=-90, max_value=90)
    pickup_lng = serializers.FloatField(min_value=-180, max_value=180)
    drop_address = serializers.CharField(max_length=512)
    drop_lat = serializers.FloatField(min_value=-90, max_value=90)
    drop_lng = serializers.FloatField(min_value=-180, max_value=180)
    pickup_time = serializers.DateTimeField()
    passenger_count = serializers.IntegerField(min_value=1, default=1)

    quote_id = serializers.CharField(max_length=64, required=False, allow_blank=False)
    vehicle_type_id = serializers.IntegerField(min_value=1, required=False)
    # Legacy clients send a precomputed fare instead of a quote
    estimated_cost = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)

    def validate(self, data):
        if not data.get('quote_id') and data.get('estimated_cost') is None:
            raise serializers.ValidationError("Either quote_id (recommended) or estimated_cost is required")
        if data.get('quote_id') and not data.get('vehicle_type_id'):
            raise serializers.ValidationError("vehicle_type_id is required when using quote_id")
        return data


class RideDetailSerializer(serializers.ModelSerializer):
    class Meta:
        model = RideDetail
        fields = ['pickup_address', 'pickup_lat', 'pickup_lng', 'drop_address', 'drop_lat', 'drop_lng', 'vehicle_type', 'passenger_count']


class BookingSerializer(serializers.ModelSerializer):
    ride = RideDetailSerializer(read_only=True)

    class Meta:
        model = Booking
        fields = ['id', 'booking_type', 'status', 'scheduled_time', 'estimated_cost', 'actual_cost', 'provider', 'ride', 'created_at']
        read_only_fields = fields


class TripStartSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    start_location = LocationSerializer()
    start_time = serializers.DateTimeField(required=False)


class LocationUpdateSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    location = LocationSerializer()
    speed_kmh = serializers.FloatField(min_value=0, required=False, allow_null=True)
    bearing = serializers.FloatField(min_value=0, max_value=360, required=False, allow_null=True)
    accuracy_meters = serializers.FloatField(min_value=0, required=False, allow_null=True)


class AdditionalChargesSerializer(serializers.Serializer):
    tip = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    waiting_charges = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    toll_charges = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    promo_discount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)


class TripEndSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    end_location = LocationSerializer()
    end_time = serializers.DateTimeField(required=False)
    additional_charges = AdditionalChargesSerializer(required=False)


class TripPauseSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
    location = LocationSerializer(required=False)
