import logging
import re
import time
import uuid
from datetime import timedelta
from decimal import Decimal, ROUND_CEILING

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ..db import is_statement_retryable, retry_policy, session_lock_wait, with_store_retry
from ..models import FareBreakdown
from .retry import BackoffPolicy

logger = logging.getLogger(__name__)

QUOTE_ID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)


class QuoteLedger:
    """Issues time-boxed quotes and binds them to bookings.

    Quotes are not stored until a booking exists. Before booking only the
    quote id's shape is checked; expiry is carried in the quote response
    and enforced by the client.
    """

    def __init__(self, ttl_minutes: int = None, policy: BackoffPolicy = None, sleep=time.sleep):
        self.ttl = timedelta(minutes=ttl_minutes or settings.RIDE_PRICING.get("QUOTE_TTL_MINUTES", 10))
        self.policy = policy or retry_policy("QUOTE_BINDING")
        self.sleep = sleep

    def issue(self, breakdown: dict, now=None) -> str:
        now = now or timezone.now()
        breakdown.setdefault("quote_id", str(uuid.uuid4()))
        breakdown["issued_at"] = now
        breakdown["expires_at"] = now + self.ttl
        return breakdown["quote_id"]

    @staticmethod
    def validate_format(quote_id) -> bool:
        return isinstance(quote_id, str) and bool(QUOTE_ID_RE.match(quote_id))

    @staticmethod
    def is_expired(expires_at, now=None) -> bool:
        return (now or timezone.now()) >= expires_at

    def bind_to_booking(self, breakdown: dict, booking) -> FareBreakdown:
        """Persist the estimate against `booking`.

        Lock-wait timeouts are retried inside a savepoint. Raises
        PersistenceFailure once those retries are spent. Errors that abort
        the whole transaction (deadlock, lost connection) propagate
        untouched so the owner of the transaction can restart it.
        """
        def _persist():
            with transaction.atomic(), session_lock_wait("QUOTE_BINDING"):
                return FareBreakdown.objects.create(
                    booking=booking,
                    quote_id=breakdown["quote_id"],
                    vehicle_type_id=breakdown["vehicle_type_id"],
                    distance_km_est=Decimal(str(breakdown["distance_km"])),
                    # Stored in whole minutes, rounded up like provider durations
                    time_min_est=int(Decimal(str(breakdown["duration_min"])).to_integral_value(rounding=ROUND_CEILING)),
                    base_fare_est=Decimal(str(breakdown["base_fare"])),
                    distance_component_est=Decimal(str(breakdown["distance_component"])),
                    time_component_est=Decimal(str(breakdown["time_component"])),
                    surge_component_est=Decimal(str(breakdown["surge_component"])),
                    night_component_est=Decimal(str(breakdown["night_component"])),
                    total_fare_est=Decimal(str(breakdown["total_fare"])),
                    surge_multiplier_applied=Decimal(str(breakdown.get("surge_multiplier", 1.0))),
                    night_hours_applied=bool(breakdown.get("night_hours_applied", False)),
                    quote_created_at=breakdown.get("issued_at") or timezone.now(),
                )

        fare = with_store_retry(_persist, self.policy, sleep=self.sleep, is_retryable=is_statement_retryable)
        logger.info("Bound quote %s to booking %s (total %s)", breakdown["quote_id"], booking.pk, breakdown["total_fare"])
        return fare
