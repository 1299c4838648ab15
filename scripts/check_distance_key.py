import os
os.environ['DJANGO_SETTINGS_MODULE'] = 'ridehail_project.settings'
os.environ.setdefault('GOOGLE_MAPS_SERVER_KEY', 'server-key')
import django
django.setup()
from ridehail.services.distance import DistanceService
import requests

ORIGIN = (-17.8, 31.0)
DESTINATION = (-17.9, 31.1)
calls = []


def fake_get(url, params=None, timeout=None):
    calls.append(params)
    body = {"status": "OK", "rows": [{"elements": [{"status": "OK", "distance": {"value": 1000}, "duration": {"value": 150}}]}]}
    return type('R', (), {'raise_for_status': lambda self: None, 'json': lambda self: body})()


def failing_get(url, params=None, timeout=None):
    calls.append(params)
    raise requests.ConnectionError('provider unreachable')


def run(label, service, getter):
    calls.clear()
    requests.get = getter
    route = service.road_distance_and_duration(ORIGIN, DESTINATION, use_cache=False)
    sent = calls[0]['key'] if calls else None
    print(f'{label}: source={route["source"]} distance_km={route["distance_km"]} duration_min={route["duration_min"]} provider_calls={len(calls)} sent_key={sent}')


orig_get = requests.get
try:
    run('configured key', DistanceService(), fake_get)
    run('no key', DistanceService(api_key=''), fake_get)
    run('provider down', DistanceService(), failing_get)
finally:
    requests.get = orig_get
