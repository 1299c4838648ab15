import logging
import uuid
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP

from django.utils import timezone

from ..exceptions import BreakdownNotFound
from ..models import FareBreakdown
from .pricing_rules import PricingRuleStore
from .surge import SurgeEstimator

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
CHARGE_KEYS = ("tip", "waiting_charges", "toll_charges", "promo_discount")


def _d(value) -> Decimal:
    return Decimal(str(value))


def fare_deviation(estimated, final) -> Decimal:
    """Signed percentage change from the estimated to the final fare.

    A zero estimate cannot be compared proportionally: it counts as 0% when
    the final fare is also zero and as 100% (signed) otherwise.
    """
    estimated, final = _d(estimated), _d(final)
    if estimated:
        return (final - estimated) / estimated * 100
    if final == estimated:
        return ZERO
    return HUNDRED if final > estimated else -HUNDRED


class FareCalculator:
    """FareCalculator prices a ride from distance, duration and the vehicle's pricing profile.

    Pricing rules:
    - Distance up to the vehicle's free_km_threshold is not charged.
    - distance component = billable km * rate_per_km, time component = minutes * rate_per_min.
    - Night hours add (base + distance + time) * (night_multiplier - 1).
    - Surge adds (base + distance + time) * (surge_multiplier - 1) when surge > 1.
    - The sum of all of the above is scaled by vehicle_multiplier.
    - The total never drops below minimum_fare.

    All arithmetic is done on unrounded Decimals; values are rounded to
    two places only when they leave the calculator.
    """

    def __init__(self, rules: PricingRuleStore = None, surge: SurgeEstimator = None):
        self.rules = rules or PricingRuleStore()
        self.surge = surge or SurgeEstimator()

    @staticmethod
    def _round(value: Decimal) -> Decimal:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @classmethod
    def _money(cls, value: Decimal) -> float:
        return float(cls._round(value))

    @staticmethod
    def compute_components(vehicle_type, distance_km: Decimal, duration_min: Decimal, night_hours_applied: bool, surge_multiplier: Decimal) -> dict:
        surge_multiplier = _d(surge_multiplier)
        base_fare = _d(vehicle_type.base_fare)
        free_km = _d(vehicle_type.free_km_threshold)
        billable_distance = max(ZERO, distance_km - free_km)

        distance_component = billable_distance * _d(vehicle_type.rate_per_km)
        time_component = duration_min * _d(vehicle_type.rate_per_min)
        running = base_fare + distance_component + time_component

        night_component = running * (_d(vehicle_type.night_multiplier) - ONE) if night_hours_applied else ZERO
        surge_component = running * (surge_multiplier - ONE) if surge_multiplier > ONE else ZERO

        subtotal = (running + night_component + surge_component) * _d(vehicle_type.vehicle_multiplier)
        minimum_fare = _d(vehicle_type.minimum_fare)

        return {
            "base_fare": base_fare,
            "free_km_threshold": free_km,
            "billable_distance": billable_distance,
            "distance_component": distance_component,
            "time_component": time_component,
            "night_component": night_component,
            "surge_component": surge_component,
            "subtotal": subtotal,
            "minimum_fare": minimum_fare,
            "total_fare": max(subtotal, minimum_fare),
        }

    def estimate(self, distance_km, duration_min, vehicle_type_id, pickup_time=None, pickup_location=None, drop_location=None) -> dict:
        if distance_km is None or duration_min is None:
            raise ValueError("distance_km and duration_min are required")
        distance = _d(distance_km)
        duration = _d(duration_min)
        if distance < 0 or duration < 0:
            raise ValueError("distance_km and duration_min cannot be negative")

        vehicle_type = self.rules.get_vehicle_type(vehicle_type_id)
        pickup_time = pickup_time or timezone.now()

        night_hours_applied = self.rules.is_night_hours(pickup_time)
        surge_multiplier = self.surge.estimate_multiplier(pickup_location, vehicle_type, pickup_time)

        c = self.compute_components(vehicle_type, distance, duration, night_hours_applied, surge_multiplier)

        breakdown = {
            "quote_id": str(uuid.uuid4()),
            "vehicle_type_id": vehicle_type.pk,
            "vehicle_type_name": vehicle_type.display_name,
            "distance_km": float(distance),
            "duration_min": int(duration) if duration == duration.to_integral_value() else float(duration),
            "base_fare": self._money(c["base_fare"]),
            "distance_component": self._money(c["distance_component"]),
            "time_component": self._money(c["time_component"]),
            "night_component": self._money(c["night_component"]),
            "surge_component": self._money(c["surge_component"]),
            "vehicle_multiplier": float(_d(vehicle_type.vehicle_multiplier)),
            "surge_multiplier": float(surge_multiplier),
            "night_hours_applied": night_hours_applied,
            "minimum_fare": self._money(c["minimum_fare"]),
            "total_fare": self._money(c["total_fare"]),
            "free_km_threshold": float(c["free_km_threshold"]),
            "billable_distance": self._money(c["billable_distance"]),
        }
        logger.debug("Fare estimate for vehicle type %s: %s", vehicle_type.pk, breakdown)
        return breakdown

    def reconcile(self, booking_id, actual_distance_km, actual_duration_min, additional_charges: dict = None) -> dict:
        """Recompute the fare from actual trip values and persist it on the booking's breakdown.

        Night and surge use the values applied at quote time, not the current ones.
        """
        try:
            fare = FareBreakdown.objects.select_related("vehicle_type").get(booking_id=booking_id)
        except FareBreakdown.DoesNotExist:
            raise BreakdownNotFound()

        distance = _d(actual_distance_km)
        duration = _d(actual_duration_min)
        c = self.compute_components(
            fare.vehicle_type, distance, duration, fare.night_hours_applied, _d(fare.surge_multiplier_applied)
        )

        charges = {k: _d((additional_charges or {}).get(k) or 0) for k in CHARGE_KEYS}
        total_fare = c["total_fare"]
        final_fare = total_fare + charges["tip"] + charges["waiting_charges"] + charges["toll_charges"] - charges["promo_discount"]

        now = timezone.now()
        fare.distance_km_act = self._round(distance)
        fare.time_min_act = int(duration.to_integral_value(rounding=ROUND_CEILING))
        fare.base_fare_act = self._round(c["base_fare"])
        fare.distance_component_act = self._round(c["distance_component"])
        fare.time_component_act = self._round(c["time_component"])
        fare.surge_component_act = self._round(c["surge_component"])
        fare.night_component_act = self._round(c["night_component"])
        fare.total_fare_act = self._round(total_fare)
        fare.tip_amount = self._round(charges["tip"])
        fare.waiting_charges = self._round(charges["waiting_charges"])
        fare.toll_charges = self._round(charges["toll_charges"])
        fare.promo_discount = self._round(charges["promo_discount"])
        fare.final_fare = self._round(final_fare)
        fare.fare_calculated_at = now
        fare.trip_ended_at = now
        fare.save()

        estimated = _d(fare.total_fare_est)
        deviation = fare_deviation(estimated, final_fare)

        return {
            "booking_id": str(booking_id),
            "actual_distance_km": float(distance),
            "actual_duration_min": float(duration),
            "base_fare": self._money(c["base_fare"]),
            "distance_component": self._money(c["distance_component"]),
            "time_component": self._money(c["time_component"]),
            "night_component": self._money(c["night_component"]),
            "surge_component": self._money(c["surge_component"]),
            "total_fare": self._money(total_fare),
            "tip_amount": self._money(charges["tip"]),
            "waiting_charges": self._money(charges["waiting_charges"]),
            "toll_charges": self._money(charges["toll_charges"]),
            "promo_discount": self._money(charges["promo_discount"]),
            "final_fare": self._money(final_fare),
            "estimated_fare": self._money(estimated),
            "fare_deviation_percentage": self._money(deviation),
        }
