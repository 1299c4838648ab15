from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest

from ridehail.exceptions import BookingNotFound, InvalidState, MissingTripStart, NotAssigned
from ridehail.models import Booking, BookingRequest, ChatSession, FareBreakdown, TripLocationLog
from ridehail.notifications import trip_completed
from ridehail.services.pricing import FareCalculator, fare_deviation
from ridehail.services.pricing_rules import PricingDefaults, PricingRuleStore
from ridehail.services.quotes import QuoteLedger
from ridehail.services.surge import SurgeEstimator
from ridehail.services.trips import TripReconciler, fare_deviation_verdict, polyline_distance_km

START = datetime(2026, 1, 15, 12, 0, tzinfo=dt_timezone.utc)
PICKUP = {'lat': 12.9, 'lng': 77.6}
DROP = {'lat': 12.989932, 'lng': 77.6}


def test_verdict_within_tolerance():
    assert fare_deviation_verdict(186, 196, 20) == {
        'is_valid': True,
        'deviation_percentage': 5.38,
        'requires_review': False,
        'max_allowed_deviation': 20.0,
    }


def test_verdict_over_tolerance():
    verdict = fare_deviation_verdict(100, 130, 20)
    assert verdict['deviation_percentage'] == 30.0
    assert verdict['requires_review'] is True
    assert verdict['is_valid'] is False


def test_verdict_uses_absolute_deviation():
    assert fare_deviation_verdict(100, 70, 20)['requires_review'] is True
    assert fare_deviation_verdict(100, 70, 20)['deviation_percentage'] == 30.0


def test_verdict_boundary_is_allowed():
    assert fare_deviation_verdict(100, 120, 20)['requires_review'] is False


def test_verdict_zero_estimate():
    assert fare_deviation_verdict(0, 0, 20)['deviation_percentage'] == 0.0
    assert fare_deviation_verdict(0, 50, 20)['deviation_percentage'] == 100.0
    assert fare_deviation_verdict(0, 50, 20)['requires_review'] is True


@pytest.mark.parametrize('estimated, final, expected', [
    (0, 0, Decimal('0')),
    (0, 10, Decimal('100')),
    (0, -5, Decimal('-100')),
    (100, 130, Decimal('30')),
    (100, 70, Decimal('-30')),
])
def test_fare_deviation(estimated, final, expected):
    assert fare_deviation(estimated, final) == expected


def test_polyline_distance():
    assert polyline_distance_km([]) == 0
    assert polyline_distance_km([(1, 1)]) == 0
    there_and_back = polyline_distance_km([(0, 0), (0, 1), (0, 0)])
    assert there_and_back == pytest.approx(2 * 111.195, abs=0.01)


def reconciler():
    rules = PricingRuleStore(defaults=PricingDefaults(), rule_loader=lambda key: None)
    calc = FareCalculator(rules=rules, surge=SurgeEstimator(demand_counter=lambda since: (0, 0)))
    return TripReconciler(calculator=calc, rules=rules)


def quoted(booking, vehicle_type):
    calc = reconciler().calculator
    fare = calc.estimate(10, 20, vehicle_type.pk, pickup_time=START)
    QuoteLedger().issue(fare, now=START)
    QuoteLedger().bind_to_booking(fare, booking)
    return booking


@pytest.mark.django_db
def test_accept_assigns_worker_and_expires_other_requests(ride_booking, worker, other_worker):
    BookingRequest.objects.create(booking=ride_booking, provider=worker)
    BookingRequest.objects.create(booking=ride_booking, provider=other_worker)

    booking = reconciler().accept(ride_booking.pk, worker)

    assert booking.provider == worker
    assert booking.status == Booking.STATUS_ACCEPTED
    statuses = dict(ride_booking.requests.values_list('provider_id', 'status'))
    assert statuses == {worker.pk: BookingRequest.STATUS_ACCEPTED, other_worker.pk: BookingRequest.STATUS_EXPIRED}

    with pytest.raises(InvalidState):
        reconciler().accept(ride_booking.pk, other_worker)


@pytest.mark.django_db
def test_start_checks_assignment_and_state(ride_booking, worker, other_worker):
    trips = reconciler()
    trips.accept(ride_booking.pk, worker)

    with pytest.raises(NotAssigned):
        trips.start(ride_booking.pk, other_worker, PICKUP, START)

    result = trips.start(ride_booking.pk, worker, PICKUP, START)
    assert result['start_time'] == START.isoformat()
    ride_booking.refresh_from_db()
    assert ride_booking.status == Booking.STATUS_IN_PROGRESS
    assert ride_booking.location_logs.filter(event_type=TripLocationLog.EVENT_TRIP_START).count() == 1

    with pytest.raises(InvalidState):
        trips.start(ride_booking.pk, worker, PICKUP, START)


@pytest.mark.django_db
def test_unknown_booking(worker):
    with pytest.raises(BookingNotFound):
        reconciler().accept('00000000-0000-4000-8000-000000000000', worker)


@pytest.mark.django_db
def test_end_uses_logged_route(ride_booking, vehicle_type, worker):
    quoted(ride_booking, vehicle_type)
    trips = reconciler()
    trips.accept(ride_booking.pk, worker)
    trips.start(ride_booking.pk, worker, PICKUP, START)
    trips.location_update(ride_booking.pk, worker, DROP, speed_kmh=32.5, bearing=0)
    trips.pause(ride_booking.pk, worker, reason='fuel')
    trips.resume(ride_booking.pk, worker)
    chat = ChatSession.objects.create(booking=ride_booking)

    result = trips.end(ride_booking.pk, worker, DROP, end_time=START + timedelta(minutes=19, seconds=10), additional_charges={'tip': 10})

    assert result['trip_summary']['duration_min'] == 20
    assert result['trip_summary']['distance_km'] == 10.0
    assert result['trip_summary']['start_location'] == PICKUP
    assert result['fare_details']['total_fare'] == 186.0
    assert result['fare_details']['final_fare'] == 196.0
    assert result['fare_validation']['requires_review'] is False
    assert result['status'] == Booking.STATUS_COMPLETED

    ride_booking.refresh_from_db()
    assert ride_booking.actual_cost == Decimal('196.00')
    chat.refresh_from_db()
    assert chat.session_status == ChatSession.STATUS_ENDED

    with pytest.raises(InvalidState):
        trips.end(ride_booking.pk, worker, DROP)


@pytest.mark.django_db
def test_end_without_route_uses_pickup_and_drop(ride_booking, vehicle_type, worker):
    quoted(ride_booking, vehicle_type)
    trips = reconciler()
    trips.accept(ride_booking.pk, worker)
    trips.start(ride_booking.pk, worker, PICKUP, START)
    chat = ChatSession.objects.create(booking=ride_booking)

    # 60 minutes instead of 20: 50 + 96 + 120 = 266, 43% over the estimate
    result = trips.end(ride_booking.pk, worker, DROP, end_time=START + timedelta(minutes=60))

    assert result['trip_summary']['distance_km'] == 10.0
    assert result['fare_details']['final_fare'] == 266.0
    assert result['fare_validation']['deviation_percentage'] == 43.01
    assert result['status'] == Booking.STATUS_PENDING_REVIEW
    chat.refresh_from_db()
    assert chat.session_status == ChatSession.STATUS_ACTIVE


@pytest.mark.django_db
def test_end_time_before_start_is_zero_duration(ride_booking, vehicle_type, worker):
    quoted(ride_booking, vehicle_type)
    trips = reconciler()
    trips.accept(ride_booking.pk, worker)
    trips.start(ride_booking.pk, worker, PICKUP, START)

    result = trips.end(ride_booking.pk, worker, DROP, end_time=START - timedelta(minutes=5))
    assert result['trip_summary']['duration_min'] == 0


@pytest.mark.django_db
def test_end_without_start_log(ride_booking, vehicle_type, worker):
    quoted(ride_booking, vehicle_type)
    Booking.objects.filter(pk=ride_booking.pk).update(provider=worker, status=Booking.STATUS_IN_PROGRESS)

    with pytest.raises(MissingTripStart):
        reconciler().end(ride_booking.pk, worker, DROP)
    ride_booking.refresh_from_db()
    assert ride_booking.status == Booking.STATUS_IN_PROGRESS


@pytest.mark.django_db
def test_location_update_requires_trip_in_progress(ride_booking, worker):
    trips = reconciler()
    trips.accept(ride_booking.pk, worker)
    with pytest.raises(InvalidState):
        trips.location_update(ride_booking.pk, worker, PICKUP)


@pytest.mark.django_db
def test_failing_receiver_does_not_break_end(ride_booking, vehicle_type, worker):
    def broken_receiver(sender, **kwargs):
        raise RuntimeError('mail server down')

    trip_completed.connect(broken_receiver, dispatch_uid='test.broken')
    try:
        quoted(ride_booking, vehicle_type)
        trips = reconciler()
        trips.accept(ride_booking.pk, worker)
        trips.start(ride_booking.pk, worker, PICKUP, START)
        result = trips.end(ride_booking.pk, worker, DROP, end_time=START + timedelta(minutes=20))
    finally:
        trip_completed.disconnect(dispatch_uid='test.broken')

    assert result['status'] == Booking.STATUS_COMPLETED


@pytest.mark.django_db
def test_status_visible_to_participants_only(ride_booking, customer, worker, other_worker):
    trips = reconciler()
    trips.accept(ride_booking.pk, worker)
    trips.start(ride_booking.pk, worker, PICKUP, START)
    trips.location_update(ride_booking.pk, worker, DROP, speed_kmh=30)

    status = trips.status(ride_booking.pk, customer)
    assert status['status'] == Booking.STATUS_IN_PROGRESS
    assert status['current_location']['lat'] == 12.989932
    assert status['current_location']['speed_kmh'] == 30.0
    assert trips.status(ride_booking.pk, worker)['booking_id'] == str(ride_booking.pk)

    with pytest.raises(BookingNotFound):
        trips.status(ride_booking.pk, other_worker)


@pytest.mark.django_db
def test_zero_estimate_deviation_matches_verdict(ride_booking, vehicle_type, worker):
    quoted(ride_booking, vehicle_type)
    FareBreakdown.objects.filter(booking=ride_booking).update(total_fare_est=Decimal('0.00'))
    Booking.objects.filter(pk=ride_booking.pk).update(estimated_cost=Decimal('0.00'))
    trips = reconciler()
    trips.accept(ride_booking.pk, worker)
    trips.start(ride_booking.pk, worker, PICKUP, START)

    result = trips.end(ride_booking.pk, worker, DROP, end_time=START + timedelta(minutes=20), additional_charges={'tip': 10})

    assert result['fare_details']['estimated_fare'] == 0.0
    assert result['fare_details']['final_fare'] == 196.0
    assert result['fare_details']['fare_deviation_percentage'] == 100.0
    assert result['fare_validation']['deviation_percentage'] == 100.0
    assert result['fare_validation']['requires_review'] is True
    assert result['status'] == Booking.STATUS_PENDING_REVIEW
