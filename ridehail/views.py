import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .db import retry_policy, session_lock_wait, with_store_retry
from .exceptions import RideServiceError
from .models import Booking, BookingRequest, RideDetail
from .notifications import booking_created, notify
from .permissions import IsWorker
from .serializers import (
    BookingSerializer,
    CreateRideBookingSerializer,
    LocationUpdateSerializer,
    QuoteValidateSerializer,
    RideQuoteSerializer,
    TripEndSerializer,
    TripPauseSerializer,
    TripStartSerializer,
    VehicleTypeSerializer,
)
from .services.distance import DistanceService
from .services.pricing import FareCalculator
from .services.pricing_rules import PricingRuleStore
from .services.quotes import QuoteLedger
from .services.surge import SurgeEstimator
from .services.trips import TripReconciler

logger = logging.getLogger(__name__)


def error_response(exc: RideServiceError) -> Response:
    return Response({"detail": str(exc)}, status=exc.status_code)


class RideQuoteView(APIView):
    """Fare estimate for a ride. Nothing is stored until the quote is booked."""

    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RideQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        pickup, drop = data['pickup'], data['drop']

        rules = PricingRuleStore()
        try:
            vehicle_type = rules.get_vehicle_type(data['vehicle_type_id'])
            route = DistanceService().road_distance_and_duration(pickup, drop)
            fare = FareCalculator(rules=rules).estimate(
                distance_km=route['distance_km'],
                duration_min=route['duration_min'],
                vehicle_type_id=vehicle_type.pk,
                pickup_time=data['pickup_time'],
                pickup_location=pickup,
                drop_location=drop,
            )
        except RideServiceError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Error generating ride quote")
            return Response({"detail": "Server error while generating ride quote"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        now = timezone.now()
        QuoteLedger().issue(fare, now=now)
        pickup_minutes = settings.RIDE_PRICING.get("ESTIMATED_PICKUP_MINUTES", 5)
        currency = settings.RIDE_PRICING.get("CURRENCY", "")

        return Response({
            "quote_id": fare['quote_id'],
            "distance_km": fare['distance_km'],
            "duration_min": fare['duration_min'],
            "vehicle_type": fare['vehicle_type_name'],
            "fare": {
                "base": fare['base_fare'],
                "distance": fare['distance_component'],
                "time": fare['time_component'],
                "surge": fare['surge_component'],
                "night": fare['night_component'],
                "total": fare['total_fare'],
            },
            "surge_multiplier": fare['surge_multiplier'],
            "night_hours": fare['night_hours_applied'],
            "minimum_fare": fare['minimum_fare'],
            "free_km_threshold": fare['free_km_threshold'],
            "billable_distance": fare['billable_distance'],
            "vehicle_multiplier": fare['vehicle_multiplier'],
            "estimated_pickup_time": (now + timedelta(minutes=pickup_minutes)).isoformat(),
            "expires_at": fare['expires_at'].isoformat(),
            "passenger_count": data['passenger_count'],
            "breakdown_details": {
                "base_fare_description": f"Base fare for {vehicle_type.display_name}",
                "distance_description": f"{fare['billable_distance']} km @ {currency}{vehicle_type.rate_per_km}/km",
                "time_description": f"{fare['duration_min']} min @ {currency}{vehicle_type.rate_per_min}/min",
                "surge_description": f"{fare['surge_multiplier']}x surge pricing" if fare['surge_multiplier'] > 1 else None,
                "night_description": f"Night charges ({vehicle_type.night_multiplier}x)" if fare['night_hours_applied'] else None,
                "vehicle_description": (
                    f"{vehicle_type.display_name} multiplier ({fare['vehicle_multiplier']}x)" if fare['vehicle_multiplier'] != 1 else None
                ),
            },
        })


class QuoteValidateView(APIView):
    """Checks the shape of a quote id before booking. Quotes are not stored, so nothing else can be checked."""

    permission_classes = [AllowAny]

    def post(self, request):
        serializer = QuoteValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quote_id = serializer.validated_data['quote_id']

        if not QuoteLedger.validate_format(quote_id):
            return Response({"detail": "Invalid quote ID format"}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"quote_id": quote_id, "is_valid": True, "message": "Quote is valid and ready for booking"})


class VehicleTypeListView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        vehicle_types = PricingRuleStore().active_vehicle_types()
        data = VehicleTypeSerializer(vehicle_types, many=True).data
        return Response({"vehicle_types": data, "total_count": len(data)})


class PricingInfoView(APIView):
    """Current surge, night window and cancellation policy."""

    permission_classes = [AllowAny]

    def get(self, request):
        rules = PricingRuleStore()

        surge_info = {"current_surge": 1.0, "surge_areas": [], "message": "Normal pricing in effect"}
        if request.query_params.get('lat') and request.query_params.get('lng'):
            current = SurgeEstimator().current_surge()
            surge_info.update(current_surge=current['current_surge'], message=current['message'])

        night_hours = rules.night_window()
        night_hours['is_active'] = rules.is_night_hours(timezone.now())

        return Response({
            "surge_info": surge_info,
            "night_hours": night_hours,
            "cancellation_policy": rules.cancellation_policy(),
            "general_info": {
                "currency": settings.RIDE_PRICING.get("CURRENCY"),
                "distance_unit": "km",
                "time_unit": "minutes",
            },
        })


class CreateRideBookingView(APIView):
    def post(self, request):
        serializer = CreateRideBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        ledger = QuoteLedger()
        quote_id = data.get('quote_id')
        estimated_cost = data.get('estimated_cost')
        fare = None

        if quote_id:
            if not ledger.validate_format(quote_id):
                return Response({"detail": "Invalid or expired quote_id"}, status=status.HTTP_400_BAD_REQUEST)

            # Never trust a client-side fare: re-derive the estimate from the route
            pickup = {"lat": data['pickup_lat'], "lng": data['pickup_lng']}
            drop = {"lat": data['drop_lat'], "lng": data['drop_lng']}
            try:
                route = DistanceService().road_distance_and_duration(pickup, drop)
                fare = FareCalculator().estimate(
                    distance_km=route['distance_km'],
                    duration_min=route['duration_min'],
                    vehicle_type_id=data['vehicle_type_id'],
                    pickup_time=data['pickup_time'],
                    pickup_location=pickup,
                    drop_location=drop,
                )
            except RideServiceError as exc:
                logger.warning("Fare validation failed for quote %s: %s", quote_id, exc)
                return error_response(exc)

            fare['quote_id'] = quote_id
            ledger.issue(fare)
            estimated_cost = Decimal(str(fare['total_fare']))

        def _create():
            with transaction.atomic(), session_lock_wait("BOOKING"):
                booking = Booking.objects.create(
                    customer=request.user,
                    booking_type=Booking.TYPE_RIDE,
                    scheduled_time=data['pickup_time'],
                    estimated_cost=estimated_cost,
                )
                RideDetail.objects.create(
                    booking=booking,
                    pickup_address=data['pickup_address'],
                    pickup_lat=Decimal(str(data['pickup_lat'])),
                    pickup_lng=Decimal(str(data['pickup_lng'])),
                    drop_address=data['drop_address'],
                    drop_lat=Decimal(str(data['drop_lat'])),
                    drop_lng=Decimal(str(data['drop_lng'])),
                    vehicle_type_id=data.get('vehicle_type_id') if fare else None,
                    passenger_count=data['passenger_count'],
                )
                # Open dispatch request; any worker may accept it
                BookingRequest.objects.create(booking=booking)
                if fare:
                    ledger.bind_to_booking(fare, booking)
                return booking

        try:
            booking = with_store_retry(_create, retry_policy("BOOKING"))
        except RideServiceError as exc:
            logger.error("Ride booking failed for user %s: %s", request.user.pk, exc)
            return error_response(exc)

        notify(booking_created, sender=self.__class__, booking=booking, fare=fare)

        return Response({
            "message": "Ride booking created successfully",
            "booking": BookingSerializer(booking).data,
            "quote_id": quote_id or None,
            "estimated_cost": float(booking.estimated_cost),
            "fare_breakdown": {
                "distance_km": fare['distance_km'],
                "duration_min": fare['duration_min'],
                "vehicle_type": fare['vehicle_type_name'],
                "total_fare": fare['total_fare'],
                "surge_multiplier": fare['surge_multiplier'],
                "night_hours": fare['night_hours_applied'],
            } if fare else None,
        }, status=status.HTTP_201_CREATED)


class AcceptRideView(APIView):
    permission_classes = [IsWorker]

    def post(self, request, pk):
        try:
            booking = TripReconciler().accept(pk, request.user)
        except RideServiceError as exc:
            return error_response(exc)
        return Response(BookingSerializer(booking).data)


class TripStartView(APIView):
    permission_classes = [IsWorker]

    def post(self, request):
        serializer = TripStartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = TripReconciler().start(data['booking_id'], request.user, dict(data['start_location']), data.get('start_time'))
        except RideServiceError as exc:
            return error_response(exc)
        return Response({"message": "Trip started successfully", **result})


class TripLocationUpdateView(APIView):
    permission_classes = [IsWorker]

    def post(self, request):
        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            log = TripReconciler().location_update(
                data['booking_id'], request.user, dict(data['location']),
                speed_kmh=data.get('speed_kmh'), bearing=data.get('bearing'), accuracy_meters=data.get('accuracy_meters'),
            )
        except RideServiceError as exc:
            return error_response(exc)
        return Response({
            "message": "Location updated successfully",
            "booking_id": str(data['booking_id']),
            "location": {"lat": data['location']['lat'], "lng": data['location']['lng']},
            "timestamp": log.recorded_at.isoformat(),
        })


class TripEndView(APIView):
    permission_classes = [IsWorker]

    def post(self, request):
        serializer = TripEndSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = TripReconciler().end(
                data['booking_id'], request.user, dict(data['end_location']),
                end_time=data.get('end_time'), additional_charges=data.get('additional_charges'),
            )
        except RideServiceError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Error ending trip %s", data['booking_id'])
            return Response({"detail": "Server error while ending trip"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        message = "Trip completed. Fare under review due to significant deviation." if result['fare_validation']['requires_review'] else "Trip completed successfully"
        return Response({"message": message, **result})


class TripPauseView(APIView):
    permission_classes = [IsWorker]

    def post(self, request):
        serializer = TripPauseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        location = dict(data['location']) if data.get('location') else None

        try:
            log = TripReconciler().pause(data['booking_id'], request.user, reason=data.get('reason'), location=location)
        except RideServiceError as exc:
            return error_response(exc)
        return Response({
            "message": "Trip paused successfully",
            "booking_id": str(data['booking_id']),
            "reason": data.get('reason'),
            "timestamp": log.recorded_at.isoformat(),
        })


class TripResumeView(APIView):
    permission_classes = [IsWorker]

    def post(self, request):
        serializer = TripPauseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        location = dict(data['location']) if data.get('location') else None

        try:
            log = TripReconciler().resume(data['booking_id'], request.user, location=location)
        except RideServiceError as exc:
            return error_response(exc)
        return Response({
            "message": "Trip resumed successfully",
            "booking_id": str(data['booking_id']),
            "timestamp": log.recorded_at.isoformat(),
        })


class TripStatusView(APIView):
    def get(self, request, pk):
        try:
            return Response(TripReconciler().status(pk, request.user))
        except RideServiceError as exc:
            return error_response(exc)
