import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent
BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me-in-production")

# Read DEBUG from environment; defaults to True for local development
DEBUG = os.getenv("DJANGO_DEBUG", "True") == "True"

ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h.strip()]

# CSRF trusted origins: supply a comma-separated list of origins (including scheme)
csrf_origins = os.getenv('DJANGO_CSRF_TRUSTED_ORIGINS', '')
if csrf_origins:
    CSRF_TRUSTED_ORIGINS = [s.strip() for s in csrf_origins.split(',') if s.strip()]
else:
    CSRF_TRUSTED_ORIGINS = []

SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # third party
    "rest_framework",

    # local
    "ridehail.apps.RideHailConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    # WhiteNoise should be directly after SecurityMiddleware so it can serve static files early
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "ridehail_project.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "ridehail_project.wsgi.application"

# Database

# Use local SQLite for development by default. To use a remote MySQL server set USE_REMOTE_DB=True
# and provide DB_NAME, DB_USER, DB_PASSWORD, DB_HOST and optionally DB_PORT.
if os.getenv("USE_REMOTE_DB", "False") == "True":
    DATABASES = {
        "default": {
            "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.mysql"),
            "NAME": os.getenv("DB_NAME"),
            "USER": os.getenv("DB_USER"),
            "PASSWORD": os.getenv("DB_PASSWORD"),
            "HOST": os.getenv("DB_HOST"),
            "PORT": os.getenv("DB_PORT", "3306"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }


AUTH_PASSWORD_VALIDATORS = []

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
}

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "ridehail": {"handlers": ["console"], "level": os.getenv("LOG_LEVEL", "INFO"), "propagate": False},
    },
}


# Email
# In development prefer the console backend to avoid real SMTP/TLS issues.
if DEBUG:
    EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend")
else:
    EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")

EMAIL_HOST = os.getenv("EMAIL_HOST", "smtp.gmail.com")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", "587"))
EMAIL_USE_TLS = os.getenv("EMAIL_USE_TLS", "True") == "True"
EMAIL_HOST_USER = os.getenv("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("EMAIL_HOST_PASSWORD", "")
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "rides@example.com")

# Google Maps
# Client key is for the browser (Maps JS + Places); server key is for Distance Matrix calls.
# The old single GOOGLE_MAPS_API_KEY env var is still accepted if either new var is not set.
GOOGLE_MAPS_CLIENT_KEY = os.getenv("GOOGLE_MAPS_CLIENT_KEY", os.getenv("GOOGLE_MAPS_API_KEY", ""))
GOOGLE_MAPS_SERVER_KEY = os.getenv("GOOGLE_MAPS_SERVER_KEY", os.getenv("GOOGLE_MAPS_API_KEY", ""))
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", GOOGLE_MAPS_CLIENT_KEY)
# Cache timeout for distance results (seconds)
GOOGLE_DISTANCE_CACHE_TIMEOUT = int(os.getenv("GOOGLE_DISTANCE_CACHE_TIMEOUT", str(6 * 3600)))
# How long a resolved API key is trusted before it is looked up again (seconds)
API_KEY_CACHE_TTL = int(os.getenv("API_KEY_CACHE_TTL", "300"))

# Users in this group may accept rides and drive the trip lifecycle endpoints
RIDE_WORKER_GROUP = os.getenv("RIDE_WORKER_GROUP", "workers")

# Pricing defaults. Each of these is used when the matching PricingRule row is missing or inactive.
RIDE_PRICING = {
    "NIGHT_HOURS_START": "23:00",
    "NIGHT_HOURS_END": "06:00",
    "CANCELLATION_FEE_CUSTOMER": 20.00,
    "CANCELLATION_GRACE_PERIOD_MINUTES": 5,
    "MAX_FARE_DEVIATION_PERCENTAGE": 20.0,
    # Used for the straight-line fallback when the distance provider is unavailable
    "AVERAGE_SPEED_KMH": 30.0,
    "SURGE_WINDOW_MINUTES": 30,
    "QUOTE_TTL_MINUTES": 10,
    "ESTIMATED_PICKUP_MINUTES": 5,
    "CURRENCY": os.getenv("RIDE_CURRENCY", "INR"),
}

# Backoff for transient database errors (seconds)
RIDE_RETRY = {
    "QUOTE_BINDING": {"MAX_RETRIES": 2, "BASE_DELAY": 1.0, "MAX_DELAY": 5.0},
    "BOOKING": {"MAX_RETRIES": 2, "BASE_DELAY": 2.0, "MAX_DELAY": 8.0},
}

# innodb_lock_wait_timeout applied to the session for contended writes (MySQL only)
RIDE_LOCK_WAIT_TIMEOUTS = {
    "QUOTE_BINDING": 5,
    "BOOKING": 10,
    "TRIP": 10,
}

DEFAULT_AUTO_FIELD = 'django.db.models.AutoField'
