"""Django settings for the eco-route trip planner project."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = BASE_DIR.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me-in-production")
DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "eco_route",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("ECO_ROUTE_DB_PATH", str(PROJECT_ROOT / "db.sqlite3")),
    }
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "eco-route-cache",
    }
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
        "eco_route": {
            "handlers": ["console"],
            "level": os.getenv("ECO_ROUTE_LOG_LEVEL", "WARNING"),
        },
    },
}

# "openrouteservice" or "osrm"
DIRECTIONS_PROVIDER = os.getenv("DIRECTIONS_PROVIDER", "openrouteservice")

ORS_BASE_URL = os.getenv("ORS_BASE_URL", "https://api.openrouteservice.org")
ORS_API_KEY = os.getenv("ORS_API_KEY", "")
ORS_SNAP_RADIUS_METERS = int(os.getenv("ORS_SNAP_RADIUS_METERS", "5000"))

OSRM_BASE_URL = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org")

ROUTE_TIMEOUT_SECONDS = float(os.getenv("ROUTE_TIMEOUT_SECONDS", "10"))
ROUTE_MAX_ATTEMPTS = int(os.getenv("ROUTE_MAX_ATTEMPTS", "3"))
ROUTE_BACKOFF_SECONDS = float(os.getenv("ROUTE_BACKOFF_SECONDS", "1.0"))

GEOCODING_BASE_URL = os.getenv("GEOCODING_BASE_URL", "https://nominatim.openstreetmap.org")
GEOCODING_USER_AGENT = os.getenv("GEOCODING_USER_AGENT", "eco-route-trip-planner/2.0")
GEOCODING_TIMEOUT_SECONDS = float(os.getenv("GEOCODING_TIMEOUT_SECONDS", "10"))
GEOCODING_RESULT_LIMIT = int(os.getenv("GEOCODING_RESULT_LIMIT", "5"))
GEOCODE_CACHE_TTL_SECONDS = int(os.getenv("GEOCODE_CACHE_TTL_SECONDS", "86400"))

SEARCH_DEBOUNCE_SECONDS = float(os.getenv("SEARCH_DEBOUNCE_SECONDS", "0.4"))
SEARCH_MIN_QUERY_LENGTH = 3
