import logging
import math
from decimal import Decimal, ROUND_HALF_UP

from django.db import DatabaseError, transaction
from django.utils import timezone

from ..db import session_lock_wait
from ..exceptions import BookingNotFound, InvalidState, MissingTripStart, NotAssigned
from ..models import Booking, BookingRequest, ChatSession, FareBreakdown, TripLocationLog
from ..notifications import notify, trip_completed, trip_location_updated, trip_started
from .distance import haversine_km
from .pricing import FareCalculator, fare_deviation
from .pricing_rules import PricingRuleStore

logger = logging.getLogger(__name__)


def fare_deviation_verdict(estimated_fare, final_fare, max_deviation) -> dict:
    """Compare the final fare to the estimate by absolute percentage deviation."""
    deviation = abs(fare_deviation(estimated_fare, final_fare))
    max_deviation = Decimal(str(max_deviation))

    requires_review = deviation > max_deviation
    return {
        "is_valid": not requires_review,
        "deviation_percentage": float(deviation.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
        "requires_review": requires_review,
        "max_allowed_deviation": float(max_deviation),
    }


def polyline_distance_km(points) -> float:
    """Sum of Haversine segments between consecutive (lat, lng) points."""
    total = 0.0
    for prev, curr in zip(points, points[1:]):
        total += haversine_km(prev[0], prev[1], curr[0], curr[1])
    return total


def _decimal(value):
    return None if value is None else Decimal(str(value))


class TripReconciler:
    """Drives a ride booking through accepted -> in_progress -> completed | pending_review."""

    def __init__(self, calculator: FareCalculator = None, rules: PricingRuleStore = None, clock=timezone.now):
        self.rules = rules or PricingRuleStore()
        self.calculator = calculator or FareCalculator(rules=self.rules)
        self.clock = clock

    @staticmethod
    def _ride(booking_id, lock=False) -> Booking:
        qs = Booking.objects.filter(booking_type=Booking.TYPE_RIDE)
        if lock:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=booking_id)
        except (Booking.DoesNotExist, ValueError):
            raise BookingNotFound()

    @staticmethod
    def _check_assigned(booking: Booking, worker):
        if booking.provider_id is None or booking.provider_id != worker.pk:
            raise NotAssigned()

    @staticmethod
    def _check_status(booking: Booking, expected: str, action: str):
        if booking.status != expected:
            raise InvalidState(f"Cannot {action}. Current status: {booking.status}")

    def _log(self, booking, worker, event_type, location=None, recorded_at=None, **extra) -> TripLocationLog:
        location = location or {}
        return TripLocationLog.objects.create(
            booking=booking,
            provider=worker,
            event_type=event_type,
            latitude=_decimal(location.get("lat")),
            longitude=_decimal(location.get("lng")),
            recorded_at=recorded_at or self.clock(),
            **extra,
        )

    def accept(self, booking_id, worker) -> Booking:
        with transaction.atomic(), session_lock_wait("TRIP"):
            booking = self._ride(booking_id, lock=True)
            self._check_status(booking, Booking.STATUS_PENDING, "accept ride")

            booking.provider = worker
            booking.status = Booking.STATUS_ACCEPTED
            booking.save(update_fields=["provider", "status", "updated_at"])

            updated = booking.requests.filter(provider=worker, status=BookingRequest.STATUS_PENDING).update(status=BookingRequest.STATUS_ACCEPTED)
            if not updated:
                booking.requests.filter(provider__isnull=True, status=BookingRequest.STATUS_PENDING).update(
                    provider=worker, status=BookingRequest.STATUS_ACCEPTED
                )
            booking.requests.filter(status=BookingRequest.STATUS_PENDING).update(status=BookingRequest.STATUS_EXPIRED)

        logger.info("Worker %s accepted ride %s", worker.pk, booking.pk)
        return booking

    def start(self, booking_id, worker, start_location: dict, start_time=None) -> dict:
        with transaction.atomic(), session_lock_wait("TRIP"):
            booking = self._ride(booking_id, lock=True)
            self._check_assigned(booking, worker)
            self._check_status(booking, Booking.STATUS_ACCEPTED, "start trip")

            trip_start_time = start_time or self.clock()
            booking.status = Booking.STATUS_IN_PROGRESS
            booking.save(update_fields=["status", "updated_at"])
            self._log(booking, worker, TripLocationLog.EVENT_TRIP_START, start_location, trip_start_time)
            FareBreakdown.objects.filter(booking=booking).update(trip_started_at=trip_start_time)

        logger.info("Trip %s started by worker %s at %s", booking.pk, worker.pk, trip_start_time)
        notify(trip_started, sender=self.__class__, booking=booking, start_time=trip_start_time, start_location=start_location)
        return {
            "booking_id": str(booking.pk),
            "start_time": trip_start_time.isoformat(),
            "start_location": start_location,
        }

    def _in_progress_ride(self, booking_id, worker, action) -> Booking:
        booking = self._ride(booking_id)
        self._check_assigned(booking, worker)
        self._check_status(booking, Booking.STATUS_IN_PROGRESS, action)
        return booking

    def location_update(self, booking_id, worker, location: dict, speed_kmh=None, bearing=None, accuracy_meters=None) -> TripLocationLog:
        booking = self._in_progress_ride(booking_id, worker, "update location")
        log = self._log(
            booking, worker, TripLocationLog.EVENT_LOCATION_UPDATE, location,
            speed_kmh=_decimal(speed_kmh), bearing=_decimal(bearing), accuracy_meters=_decimal(accuracy_meters),
        )
        notify(trip_location_updated, sender=self.__class__, booking=booking, log=log)
        return log

    def pause(self, booking_id, worker, reason: str = None, location: dict = None) -> TripLocationLog:
        booking = self._in_progress_ride(booking_id, worker, "pause trip")
        return self._log(booking, worker, TripLocationLog.EVENT_PAUSE, location, note=reason or "")

    def resume(self, booking_id, worker, location: dict = None) -> TripLocationLog:
        booking = self._in_progress_ride(booking_id, worker, "resume trip")
        return self._log(booking, worker, TripLocationLog.EVENT_RESUME, location)

    @staticmethod
    def _close_chat_sessions(booking):
        try:
            with transaction.atomic():
                ChatSession.objects.filter(booking=booking).exclude(session_status=ChatSession.STATUS_ENDED).update(
                    session_status=ChatSession.STATUS_ENDED, last_message_at=timezone.now()
                )
        except DatabaseError:
            logger.warning("Chat cleanup failed for completed trip %s", booking.pk, exc_info=True)

    def end(self, booking_id, worker, end_location: dict, end_time=None, additional_charges: dict = None) -> dict:
        with transaction.atomic(), session_lock_wait("TRIP"):
            booking = self._ride(booking_id, lock=True)
            self._check_assigned(booking, worker)
            # Only one transition out of in_progress; a repeated end is rejected here
            self._check_status(booking, Booking.STATUS_IN_PROGRESS, "end trip")

            start_log = booking.location_logs.filter(event_type=TripLocationLog.EVENT_TRIP_START).order_by("-recorded_at").first()
            if start_log is None:
                raise MissingTripStart()

            trip_start_time = start_log.recorded_at
            trip_end_time = end_time or self.clock()
            elapsed = (trip_end_time - trip_start_time).total_seconds()
            actual_duration_min = max(0, math.ceil(elapsed / 60))

            points = list(
                booking.location_logs.filter(provider=worker, latitude__isnull=False, longitude__isnull=False)
                .order_by("recorded_at", "id")
                .values_list("latitude", "longitude")
            )
            if len(points) >= 2:
                actual_distance_km = polyline_distance_km(points)
            else:
                ride = booking.ride
                actual_distance_km = haversine_km(ride.pickup_lat, ride.pickup_lng, ride.drop_lat, ride.drop_lng)
            actual_distance_km = round(actual_distance_km, 2)

            self._log(booking, worker, TripLocationLog.EVENT_TRIP_END, end_location, trip_end_time)

            fare = self.calculator.reconcile(booking.pk, actual_distance_km, actual_duration_min, additional_charges)
            verdict = fare_deviation_verdict(booking.estimated_cost, fare["final_fare"], self.rules.max_fare_deviation())

            final_status = Booking.STATUS_PENDING_REVIEW if verdict["requires_review"] else Booking.STATUS_COMPLETED
            booking.status = final_status
            booking.actual_cost = Decimal(str(fare["final_fare"]))
            booking.save(update_fields=["status", "actual_cost", "updated_at"])

            if final_status == Booking.STATUS_COMPLETED:
                self._close_chat_sessions(booking)

        logger.info("Trip %s ended: final fare %s, status %s", booking.pk, fare["final_fare"], final_status)
        if verdict["requires_review"]:
            logger.warning("Trip %s fare deviates %s%% from estimate; flagged for review", booking.pk, verdict["deviation_percentage"])
        notify(trip_completed, sender=self.__class__, booking=booking, fare=fare, verdict=verdict, status=final_status)

        first = points[0] if points else None
        return {
            "booking_id": str(booking.pk),
            "trip_summary": {
                "start_time": trip_start_time.isoformat(),
                "end_time": trip_end_time.isoformat(),
                "duration_min": actual_duration_min,
                "distance_km": actual_distance_km,
                "start_location": {
                    "lat": float(first[0]) if first else float(booking.ride.pickup_lat),
                    "lng": float(first[1]) if first else float(booking.ride.pickup_lng),
                },
                "end_location": end_location,
            },
            "fare_details": fare,
            "fare_validation": verdict,
            "status": final_status,
        }

    def status(self, booking_id, user) -> dict:
        try:
            booking = Booking.objects.select_related("ride").get(pk=booking_id)
        except (Booking.DoesNotExist, ValueError):
            raise BookingNotFound()
        if user.pk not in (booking.customer_id, booking.provider_id):
            raise BookingNotFound("Booking not found or access denied")

        current_location = None
        trip_progress = None
        if booking.status == Booking.STATUS_IN_PROGRESS:
            latest = booking.location_logs.filter(
                event_type__in=[TripLocationLog.EVENT_LOCATION_UPDATE, TripLocationLog.EVENT_TRIP_START],
                latitude__isnull=False,
            ).order_by("-recorded_at", "-id").first()
            if latest is not None:
                current_location = {
                    "lat": float(latest.latitude),
                    "lng": float(latest.longitude),
                    "speed_kmh": float(latest.speed_kmh) if latest.speed_kmh is not None else None,
                    "bearing": float(latest.bearing) if latest.bearing is not None else None,
                    "last_updated": latest.recorded_at.isoformat(),
                }

            start_log = booking.location_logs.filter(event_type=TripLocationLog.EVENT_TRIP_START).order_by("-recorded_at").first()
            if start_log is not None:
                elapsed_min = math.ceil((self.clock() - start_log.recorded_at).total_seconds() / 60)
                estimated = FareBreakdown.objects.filter(booking=booking).values_list("time_min_est", flat=True).first()
                trip_progress = {
                    "elapsed_min": elapsed_min,
                    "estimated_duration": estimated,
                    "progress_percentage": min(100, round(elapsed_min / estimated * 100)) if estimated else None,
                }

        ride = getattr(booking, "ride", None)
        return {
            "booking_id": str(booking.pk),
            "status": booking.status,
            "estimated_cost": float(booking.estimated_cost),
            "actual_cost": float(booking.actual_cost) if booking.actual_cost is not None else None,
            "current_location": current_location,
            "trip_progress": trip_progress,
            "ride_details": {
                "pickup_address": ride.pickup_address,
                "pickup_lat": float(ride.pickup_lat),
                "pickup_lng": float(ride.pickup_lng),
                "drop_address": ride.drop_address,
                "drop_lat": float(ride.drop_lat),
                "drop_lng": float(ride.drop_lng),
            } if ride else None,
            "last_updated": self.clock().isoformat(),
        }
