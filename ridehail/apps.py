from django.apps import AppConfig
from django.conf import settings


class RideHailConfig(AppConfig):
    name = "ridehail"
    verbose_name = "Ride hailing"
    default_auto_field = "django.db.models.AutoField"

    def ready(self):
        from .notifications import connect_receivers
        from .services.credentials import ApiKeyCache

        self.api_keys = ApiKeyCache(ttl_seconds=getattr(settings, "API_KEY_CACHE_TTL", 300))
        connect_receivers()
