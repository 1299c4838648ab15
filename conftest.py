from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.apps import apps
from django.contrib.auth.models import Group, User
from django.core.cache import cache
from rest_framework.test import APIClient

from ridehail.models import Booking, RideDetail, VehicleType


@pytest.fixture(autouse=True)
def no_google_key(settings, monkeypatch):
    """Distance lookups use the straight-line estimate unless a test opts in."""
    settings.TIME_ZONE = 'UTC'
    settings.GOOGLE_MAPS_SERVER_KEY = ''
    settings.GOOGLE_MAPS_API_KEY = ''
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    monkeypatch.delenv('GOOGLE_MAPS_SERVER_KEY', raising=False)
    monkeypatch.delenv('GOOGLE_MAPS_API_KEY', raising=False)
    apps.get_app_config('ridehail').api_keys.invalidate()
    cache.clear()
    yield
    apps.get_app_config('ridehail').api_keys.invalidate()


@pytest.fixture
def vehicle_type(db):
    return VehicleType.objects.create(
        name='sedan',
        display_name='Sedan',
        base_fare=Decimal('50.00'),
        rate_per_km=Decimal('12.00'),
        rate_per_min=Decimal('2.00'),
        minimum_fare=Decimal('80.00'),
        free_km_threshold=Decimal('2.00'),
        vehicle_multiplier=Decimal('1.00'),
        night_multiplier=Decimal('1.25'),
        max_surge_multiplier=Decimal('3.00'),
        surge_enabled=False,
    )


@pytest.fixture
def customer(db):
    return User.objects.create_user('rider', email='rider@example.com', password='pw')


@pytest.fixture
def worker(db, settings):
    user = User.objects.create_user('driver', email='driver@example.com', password='pw')
    group, _ = Group.objects.get_or_create(name=settings.RIDE_WORKER_GROUP)
    user.groups.add(group)
    return user


@pytest.fixture
def other_worker(db, settings):
    user = User.objects.create_user('driver2', email='driver2@example.com', password='pw')
    group, _ = Group.objects.get_or_create(name=settings.RIDE_WORKER_GROUP)
    user.groups.add(group)
    return user


@pytest.fixture
def ride_booking(customer, vehicle_type):
    """Pending ride whose pickup and drop are 10 km apart along a meridian."""
    booking = Booking.objects.create(
        customer=customer,
        booking_type=Booking.TYPE_RIDE,
        scheduled_time=datetime(2026, 1, 15, 12, 0, tzinfo=dt_timezone.utc),
        estimated_cost=Decimal('186.00'),
    )
    RideDetail.objects.create(
        booking=booking,
        pickup_address='Start',
        pickup_lat=Decimal('12.900000'),
        pickup_lng=Decimal('77.600000'),
        drop_address='End',
        drop_lat=Decimal('12.989932'),
        drop_lng=Decimal('77.600000'),
        vehicle_type=vehicle_type,
    )
    return booking


@pytest.fixture
def customer_client(customer):
    client = APIClient()
    client.force_authenticate(user=customer)
    return client


@pytest.fixture
def worker_client(worker):
    client = APIClient()
    client.force_authenticate(user=worker)
    return client
