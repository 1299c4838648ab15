import logging
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Tuple

from django.conf import settings
from django.db.models import Count, Q
from django.utils import timezone

from ..models import Booking, BookingRequest

logger = logging.getLogger(__name__)

NO_SURGE = Decimal("1.0")

# (demand index strictly above, multiplier, message)
SURGE_TIERS = (
    (80, Decimal("2.5"), "High demand - 2.5x surge pricing"),
    (60, Decimal("2.0"), "Increased demand - 2.0x surge pricing"),
    (40, Decimal("1.5"), "Moderate demand - 1.5x surge pricing"),
    (20, Decimal("1.2"), "Slight demand increase - 1.2x pricing"),
)


def count_recent_ride_demand(since) -> Tuple[int, int]:
    """Pending requests and in-flight rides among ride requests made since `since`."""
    totals = BookingRequest.objects.filter(
        requested_at__gte=since,
        booking__booking_type=Booking.TYPE_RIDE,
    ).aggregate(
        pending=Count("id", filter=Q(status=BookingRequest.STATUS_PENDING)),
        active=Count("id", filter=Q(booking__status=Booking.STATUS_IN_PROGRESS)),
    )
    return totals["pending"] or 0, totals["active"] or 0


def demand_index(pending_requests: int, active_rides: int) -> int:
    return min(100, pending_requests * 10 + active_rides * 5)


def multiplier_for_index(index: int) -> Decimal:
    for threshold, multiplier, _ in SURGE_TIERS:
        if index > threshold:
            return multiplier
    return NO_SURGE


class SurgeEstimator:
    """Maps recent ride demand to a surge multiplier.

    Lookup failures fail open to no surge so a quote is never blocked.
    """

    def __init__(self, demand_counter: Callable = count_recent_ride_demand, window_minutes: int = None, clock: Callable = timezone.now):
        self.demand_counter = demand_counter
        self.window_minutes = window_minutes or settings.RIDE_PRICING.get("SURGE_WINDOW_MINUTES", 30)
        self.clock = clock

    def _demand_index(self) -> int:
        since = self.clock() - timedelta(minutes=self.window_minutes)
        pending, active = self.demand_counter(since)
        return demand_index(pending, active)

    def estimate_multiplier(self, location, vehicle_type, pickup_time=None) -> Decimal:
        if not vehicle_type.surge_enabled:
            return NO_SURGE

        try:
            index = self._demand_index()
            multiplier = multiplier_for_index(index)
            max_surge = Decimal(str(vehicle_type.max_surge_multiplier))
        except Exception:
            logger.exception("Error calculating surge multiplier; defaulting to no surge")
            return NO_SURGE

        capped = min(multiplier, max_surge)
        logger.debug("Surge for %s at %s: index=%s multiplier=%s capped=%s", vehicle_type, location, index, multiplier, capped)
        return capped

    def current_surge(self) -> dict:
        """Uncapped demand-based surge for display."""
        try:
            index = self._demand_index()
        except Exception:
            logger.exception("Error reading current demand")
            index = 0

        for threshold, multiplier, message in SURGE_TIERS:
            if index > threshold:
                return {"current_surge": float(multiplier), "demand_index": index, "message": message}
        return {"current_surge": float(NO_SURGE), "demand_index": index, "message": "Normal pricing in effect"}
