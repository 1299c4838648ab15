from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest

from ridehail.exceptions import InvalidVehicleType
from ridehail.models import PricingRule, VehicleType
from ridehail.services.pricing_rules import PricingDefaults, PricingRuleStore, load_active_rule


def store(rules=None):
    rules = rules or {}
    return PricingRuleStore(defaults=PricingDefaults(), rule_loader=rules.get)


def at(hour, minute=0):
    return datetime(2026, 1, 15, hour, minute)


@pytest.mark.parametrize('hour, minute, expected', [
    (23, 0, True),
    (23, 30, True),
    (0, 15, True),
    (5, 59, True),
    (6, 0, False),
    (12, 0, False),
    (22, 59, False),
])
def test_default_night_window_spans_midnight(hour, minute, expected):
    assert store().is_night_hours(at(hour, minute)) is expected


@pytest.mark.parametrize('hour, expected', [(19, False), (20, True), (21, True), (22, False)])
def test_same_day_night_window(hour, expected):
    rules = store({'night_hours_start': '20:00', 'night_hours_end': '22:00'})
    assert rules.is_night_hours(at(hour)) is expected


def test_aware_instant_uses_local_time(settings):
    settings.TIME_ZONE = 'Asia/Kolkata'
    # 18:00 UTC is 23:30 in Kolkata
    assert store().is_night_hours(datetime(2026, 1, 15, 18, 0, tzinfo=dt_timezone.utc)) is True


def test_failing_loader_uses_default_window():
    def broken(key):
        raise RuntimeError('store down')

    rules = PricingRuleStore(defaults=PricingDefaults(night_hours_start='10:00', night_hours_end='11:00'), rule_loader=broken)
    assert rules.is_night_hours(at(23, 30)) is True
    assert rules.is_night_hours(at(10, 30)) is False


def test_malformed_rule_uses_default_window():
    rules = store({'night_hours_start': '25:00', 'night_hours_end': '06:00'})
    assert rules.is_night_hours(at(23, 30)) is True
    assert rules.is_night_hours(at(12, 0)) is False


def test_max_fare_deviation():
    assert store().max_fare_deviation() == Decimal('20')
    assert store({'max_fare_deviation_percentage': '35'}).max_fare_deviation() == Decimal('35')
    assert store({'max_fare_deviation_percentage': 'lots'}).max_fare_deviation() == Decimal('20')


def test_cancellation_policy():
    assert store().cancellation_policy() == {
        'fee': 20.0,
        'grace_period_minutes': 5,
        'description': 'Free cancellation within 5 minutes of booking',
    }
    policy = store({'cancellation_fee_customer': '35.50', 'cancellation_grace_period_minutes': '3'}).cancellation_policy()
    assert policy['fee'] == 35.5
    assert policy['grace_period_minutes'] == 3


def test_night_window_reports_rules():
    assert store().night_window() == {'start': '23:00', 'end': '06:00'}
    assert store({'night_hours_start': '22:00'}).night_window() == {'start': '22:00', 'end': '06:00'}


def test_defaults_from_settings(settings):
    settings.RIDE_PRICING = {**settings.RIDE_PRICING, 'MAX_FARE_DEVIATION_PERCENTAGE': 15, 'NIGHT_HOURS_START': '22:00'}
    defaults = PricingDefaults.from_settings()
    assert defaults.max_fare_deviation_percentage == Decimal('15')
    assert defaults.night_hours_start == '22:00'
    assert defaults.night_hours_end == '06:00'


@pytest.mark.django_db
def test_load_active_rule_ignores_inactive_rows():
    PricingRule.objects.create(rule_key='night_hours_start', rule_value='21:00')
    PricingRule.objects.create(rule_key='night_hours_end', rule_value='05:00', is_active=False)

    assert load_active_rule('night_hours_start') == '21:00'
    assert load_active_rule('night_hours_end') is None


@pytest.mark.django_db
def test_get_vehicle_type(vehicle_type):
    rules = store()
    assert rules.get_vehicle_type(vehicle_type.pk) == vehicle_type

    for bad in (9999, 'abc', None):
        with pytest.raises(InvalidVehicleType):
            rules.get_vehicle_type(bad)

    vehicle_type.is_active = False
    vehicle_type.save()
    with pytest.raises(InvalidVehicleType):
        rules.get_vehicle_type(vehicle_type.pk)


@pytest.mark.django_db
def test_active_vehicle_types_ordered_by_multiplier(vehicle_type):
    suv = VehicleType.objects.create(
        name='suv', display_name='SUV', base_fare=80, rate_per_km=18, rate_per_min=3, minimum_fare=120,
        vehicle_multiplier=Decimal('1.50'),
    )
    mini = VehicleType.objects.create(
        name='mini', display_name='Mini', base_fare=40, rate_per_km=10, rate_per_min=1, minimum_fare=60,
        vehicle_multiplier=Decimal('0.80'),
    )
    VehicleType.objects.create(name='old', display_name='Old', base_fare=1, rate_per_km=1, rate_per_min=1, minimum_fare=1, is_active=False)

    assert list(store().active_vehicle_types()) == [mini, vehicle_type, suv]
