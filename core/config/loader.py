"""
RMX Core Config — Django Settings Loader
==========================================
Reads the RMX_ENGINE dict from Django settings. A missing dict means
all defaults; so does running without Django settings at all.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from core.config.rules import EngineConfig

logger = logging.getLogger("rmx.config")


def load_engine_config() -> EngineConfig:
    options = getattr(settings, "RMX_ENGINE", None) or {}
    config = EngineConfig.from_options(options)
    logger.debug(f"Engine config loaded with overrides: {sorted(options)}")
    return config


def default_engine_config() -> EngineConfig:
    """RMX_ENGINE when Django settings are available, else defaults."""
    try:
        return load_engine_config()
    except ImproperlyConfigured:
        logger.debug("Django settings not configured; using default engine config")
        return EngineConfig()
