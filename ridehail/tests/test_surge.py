from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from ridehail.models import Booking, BookingRequest
from ridehail.services.surge import SurgeEstimator, count_recent_ride_demand, demand_index, multiplier_for_index

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=dt_timezone.utc)


def surge_vehicle(max_surge='3.00', enabled=True):
    return SimpleNamespace(surge_enabled=enabled, max_surge_multiplier=Decimal(max_surge))


def estimator(pending=0, active=0):
    return SurgeEstimator(demand_counter=lambda since: (pending, active), window_minutes=30, clock=lambda: NOW)


def test_demand_index():
    assert demand_index(0, 0) == 0
    assert demand_index(3, 2) == 40
    assert demand_index(20, 20) == 100


@pytest.mark.parametrize('index, expected', [
    (100, '2.5'), (81, '2.5'), (80, '2.0'), (61, '2.0'), (60, '1.5'), (41, '1.5'), (40, '1.2'), (21, '1.2'), (20, '1.0'), (0, '1.0'),
])
def test_multiplier_tiers(index, expected):
    assert multiplier_for_index(index) == Decimal(expected)


def test_surge_disabled_is_one():
    counter_calls = []
    surge = SurgeEstimator(demand_counter=lambda since: counter_calls.append(since) or (50, 50))
    assert surge.estimate_multiplier(None, surge_vehicle(enabled=False)) == Decimal('1.0')
    assert counter_calls == []


def test_surge_from_demand():
    assert estimator(pending=5).estimate_multiplier(None, surge_vehicle()) == Decimal('1.5')


def test_surge_capped_by_vehicle():
    assert estimator(pending=9).estimate_multiplier(None, surge_vehicle(max_surge='2.00')) == Decimal('2.00')


def test_surge_lookup_failure_means_no_surge():
    def broken(since):
        raise RuntimeError('store down')

    surge = SurgeEstimator(demand_counter=broken)
    assert surge.estimate_multiplier(None, surge_vehicle()) == Decimal('1.0')


def test_demand_window_passed_to_counter():
    seen = []
    surge = SurgeEstimator(demand_counter=lambda since: seen.append(since) or (0, 0), window_minutes=15, clock=lambda: NOW)
    surge.estimate_multiplier(None, surge_vehicle())
    assert seen == [NOW - timedelta(minutes=15)]


def test_current_surge():
    assert estimator(pending=5).current_surge() == {
        'current_surge': 1.5,
        'demand_index': 50,
        'message': 'Moderate demand - 1.5x surge pricing',
    }
    assert estimator().current_surge()['message'] == 'Normal pricing in effect'


@pytest.mark.django_db
def test_count_recent_ride_demand(ride_booking, customer):
    BookingRequest.objects.create(booking=ride_booking)

    in_flight = Booking.objects.create(customer=customer, scheduled_time=NOW, status=Booking.STATUS_IN_PROGRESS)
    BookingRequest.objects.create(booking=in_flight, status=BookingRequest.STATUS_ACCEPTED)

    service = Booking.objects.create(customer=customer, scheduled_time=NOW, booking_type=Booking.TYPE_SERVICE)
    BookingRequest.objects.create(booking=service)

    stale = Booking.objects.create(customer=customer, scheduled_time=NOW)
    BookingRequest.objects.create(booking=stale, requested_at=NOW - timedelta(days=365))

    assert count_recent_ride_demand(NOW - timedelta(days=1)) == (1, 1)
