import logging
import math
from typing import Tuple

import requests
from django.apps import apps
from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1, lon1, lat2, lon2 = float(lat1), float(lon1), float(lat2), float(lon2)
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class DistanceService:
    """Road distance and duration via the Google Distance Matrix API, with a straight-line fallback.

    Public method:
        road_distance_and_duration(origin, destination, use_cache=True) -> {"distance_km", "duration_min", "source"}

    Provider results are cached in the Django cache under
    `distance:{lat1:.6f}:{lng1:.6f}:{lat2:.6f}:{lng2:.6f}` for
    `settings.GOOGLE_DISTANCE_CACHE_TIMEOUT` seconds.

    A missing key, a failed request or a non-OK answer never raises: the
    Haversine distance is used instead and the duration is estimated at
    `average_speed_kmh`.
    """

    URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

    def __init__(self, api_key: str = None, average_speed_kmh: float = None, cache_timeout: int = None):
        self._api_key = api_key
        self.average_speed_kmh = float(average_speed_kmh or settings.RIDE_PRICING.get("AVERAGE_SPEED_KMH", 30.0))
        self.cache_timeout = cache_timeout if cache_timeout is not None else getattr(settings, "GOOGLE_DISTANCE_CACHE_TIMEOUT", 6 * 3600)

    @property
    def api_key(self):
        if self._api_key is not None:
            return self._api_key
        keys = apps.get_app_config("ridehail").api_keys
        # Prefer the server-specific key; fall back to the legacy single key
        return keys.get("GOOGLE_MAPS_SERVER_KEY") or keys.get("GOOGLE_MAPS_API_KEY")

    @staticmethod
    def _cache_key(lat1: float, lng1: float, lat2: float, lng2: float) -> str:
        return f"distance:{lat1:.6f}:{lng1:.6f}:{lat2:.6f}:{lng2:.6f}"

    @staticmethod
    def _coords(point) -> Tuple[float, float]:
        if isinstance(point, dict):
            point = (point.get("lat"), point.get("lng"))
        if not point or len(point) != 2 or point[0] is None or point[1] is None:
            raise ValueError("origin and destination must be (lat, lng) pairs")
        return float(point[0]), float(point[1])

    def straight_line_estimate(self, lat1, lng1, lat2, lng2) -> dict:
        distance_km = haversine_km(lat1, lng1, lat2, lng2)
        return {
            "distance_km": round(distance_km, 2),
            "duration_min": math.ceil((distance_km / self.average_speed_kmh) * 60),
            "source": "haversine",
        }

    def road_distance_and_duration(self, origin, destination, use_cache: bool = True) -> dict:
        lat1, lng1 = self._coords(origin)
        lat2, lng2 = self._coords(destination)

        api_key = self.api_key
        if not api_key:
            logger.info("No Google Maps server key configured; using straight-line distance")
            return self.straight_line_estimate(lat1, lng1, lat2, lng2)

        key = self._cache_key(lat1, lng1, lat2, lng2)
        if use_cache:
            cached = cache.get(key)
            if cached is not None:
                logger.debug("distance cache hit for %s -> %s = %s", origin, destination, cached)
                return dict(cached)

        params = {
            "units": "metric",
            "mode": "driving",
            "origins": f"{lat1},{lng1}",
            "destinations": f"{lat2},{lng2}",
            "key": api_key,
        }

        try:
            resp = requests.get(self.URL, params=params, timeout=10)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError):
            logger.exception("Google Distance Matrix request failed, falling back to Haversine")
            return self.straight_line_estimate(lat1, lng1, lat2, lng2)

        if data.get("status") != "OK":
            logger.warning("Google API returned non-OK status %s (%s), falling back to Haversine", data.get("status"), data.get("error_message"))
            return self.straight_line_estimate(lat1, lng1, lat2, lng2)

        try:
            element = data["rows"][0]["elements"][0]
            if element.get("status") != "OK":
                logger.warning("Route not available (%s), falling back to Haversine", element.get("status"))
                return self.straight_line_estimate(lat1, lng1, lat2, lng2)
            meters = element["distance"]["value"]
            seconds = element["duration"]["value"]
        except (KeyError, IndexError, TypeError):
            logger.exception("Unexpected Distance Matrix response format, falling back to Haversine")
            return self.straight_line_estimate(lat1, lng1, lat2, lng2)

        result = {
            "distance_km": round(float(meters) / 1000.0, 2),
            "duration_min": math.ceil(float(seconds) / 60.0),
            "source": "google",
        }

        try:
            cache.set(key, result, timeout=self.cache_timeout)
        except Exception:
            logger.exception("Failed to set distance cache (non-fatal)")

        logger.debug("Computed road distance %s for %s -> %s", result, origin, destination)
        return result
