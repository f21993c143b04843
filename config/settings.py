"""
RMX – Django Settings (Infrastructure Only)
============================================
Django hosts the relational store (core.persistence) and the engine
configuration. The engines themselves are plain Python.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("RMX_SECRET_KEY", "rmx-dev-key-replace-before-deployment")

DEBUG = os.environ.get("RMX_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "core.persistence",
]

# ── Database ──────────────────────────────────────────────────
# SQLite for development and tests. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("RMX_DB_PATH", BASE_DIR / "db.sqlite3"),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Order-to-Cash Engine ──────────────────────────────────────
# Recognised option names only; unknown keys fail at load time.
RMX_ENGINE = {
    "cementBandKg": [200, 500],
    "waterCementRatioBand": [0.35, 0.65],
    "deliveryVarianceTolerancePct": 5.0,
    "maxVehicleVolumeM3": 12,
    "defaultTaxRatePct": 20,
    "cashMonthlyCeiling": 50000,
    "cashPenaltyRatePct": 6,
    "creditGateMode": "advisory",
}

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "rmx": {
            "handlers": ["console"],
            "level": os.environ.get("RMX_LOG_LEVEL", "INFO"),
        },
    },
}
