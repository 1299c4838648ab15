import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from ..exceptions import InvalidVehicleType
from ..models import PricingRule, VehicleType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricingDefaults:
    """Values used when a pricing rule is missing, inactive or unreadable."""

    night_hours_start: str = "23:00"
    night_hours_end: str = "06:00"
    cancellation_fee_customer: Decimal = Decimal("20.00")
    cancellation_grace_period_minutes: int = 5
    max_fare_deviation_percentage: Decimal = Decimal("20")

    @classmethod
    def from_settings(cls) -> "PricingDefaults":
        cfg = getattr(settings, "RIDE_PRICING", {})
        return cls(
            night_hours_start=cfg.get("NIGHT_HOURS_START", cls.night_hours_start),
            night_hours_end=cfg.get("NIGHT_HOURS_END", cls.night_hours_end),
            cancellation_fee_customer=Decimal(str(cfg.get("CANCELLATION_FEE_CUSTOMER", cls.cancellation_fee_customer))),
            cancellation_grace_period_minutes=int(cfg.get("CANCELLATION_GRACE_PERIOD_MINUTES", cls.cancellation_grace_period_minutes)),
            max_fare_deviation_percentage=Decimal(str(cfg.get("MAX_FARE_DEVIATION_PERCENTAGE", cls.max_fare_deviation_percentage))),
        )


def _hour(value: str) -> int:
    hour = int(str(value).split(":")[0])
    if not 0 <= hour <= 23:
        raise ValueError(f"hour out of range: {value!r}")
    return hour


def load_active_rule(key: str) -> Optional[str]:
    return PricingRule.objects.filter(rule_key=key, is_active=True).values_list("rule_value", flat=True).first()


class PricingRuleStore:
    """Read-only access to vehicle pricing profiles and key/value pricing rules."""

    def __init__(self, defaults: PricingDefaults = None, rule_loader: Callable[[str], Optional[str]] = load_active_rule):
        self.defaults = defaults or PricingDefaults.from_settings()
        self.rule_loader = rule_loader

    def get_vehicle_type(self, vehicle_type_id) -> VehicleType:
        try:
            return VehicleType.objects.get(pk=vehicle_type_id, is_active=True)
        except (VehicleType.DoesNotExist, ValueError, TypeError, ValidationError):
            raise InvalidVehicleType()

    def active_vehicle_types(self):
        return VehicleType.objects.filter(is_active=True).order_by("vehicle_multiplier", "id")

    def get_rule(self, key: str) -> Optional[str]:
        return self.rule_loader(key)

    def _rule_or_default(self, key: str, default, cast):
        try:
            value = self.get_rule(key)
            return cast(value) if value is not None else default
        except Exception:
            logger.exception("Pricing rule %s unreadable; using default %s", key, default)
            return default

    def night_window(self) -> dict:
        start = self._rule_or_default("night_hours_start", self.defaults.night_hours_start, str)
        end = self._rule_or_default("night_hours_end", self.defaults.night_hours_end, str)
        return {"start": start, "end": end}

    def is_night_hours(self, instant: datetime) -> bool:
        if timezone.is_aware(instant):
            instant = timezone.localtime(instant)
        hour = instant.hour

        try:
            start_raw = self.get_rule("night_hours_start")
            end_raw = self.get_rule("night_hours_end")
            start_hour = _hour(start_raw if start_raw is not None else self.defaults.night_hours_start)
            end_hour = _hour(end_raw if end_raw is not None else self.defaults.night_hours_end)
        except Exception:
            logger.exception("Error checking night hours; using default window")
            start_hour = _hour(PricingDefaults.night_hours_start)
            end_hour = _hour(PricingDefaults.night_hours_end)

        # Window spans midnight (e.g. 23:00 to 06:00)
        if start_hour > end_hour:
            return hour >= start_hour or hour < end_hour
        return start_hour <= hour < end_hour

    def max_fare_deviation(self) -> Decimal:
        return self._rule_or_default(
            "max_fare_deviation_percentage", self.defaults.max_fare_deviation_percentage, lambda v: Decimal(str(v))
        )

    def cancellation_policy(self) -> dict:
        def _decimal(v):
            try:
                return Decimal(str(v))
            except InvalidOperation:
                raise ValueError(f"not a number: {v!r}")

        fee = self._rule_or_default("cancellation_fee_customer", self.defaults.cancellation_fee_customer, _decimal)
        grace = self._rule_or_default("cancellation_grace_period_minutes", self.defaults.cancellation_grace_period_minutes, int)
        return {
            "fee": float(fee),
            "grace_period_minutes": grace,
            "description": f"Free cancellation within {grace} minutes of booking",
        }
