import logging
import os
import time
from typing import Callable, Dict, Optional, Tuple

from django.conf import settings

logger = logging.getLogger(__name__)


def load_from_settings(name: str) -> Optional[str]:
    """Resolve a credential from Django settings, then the process environment."""
    return getattr(settings, name, None) or os.getenv(name) or None


class ApiKeyCache:
    """Caches resolved API credentials for `ttl_seconds`.

    Entries are stored as ``name -> (value, fetched_at)``. The clock is
    injectable so expiry can be tested without sleeping. One instance is
    owned by the app config (``apps.get_app_config('ridehail').api_keys``).
    """

    def __init__(self, loader: Callable[[str], Optional[str]] = load_from_settings, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, Tuple[Optional[str], float]] = {}

    def _is_fresh(self, name: str) -> bool:
        entry = self._entries.get(name)
        if entry is None:
            return False
        return (self.clock() - entry[1]) < self.ttl_seconds

    def get(self, name: str, use_cache: bool = True) -> Optional[str]:
        if use_cache and self._is_fresh(name):
            return self._entries[name][0]

        value = self.loader(name)
        if not value:
            logger.warning("API key not configured: %s", name)
        self._entries[name] = (value, self.clock())
        return value

    def invalidate(self, name: str = None):
        if name is None:
            self._entries.clear()
        else:
            self._entries.pop(name, None)
