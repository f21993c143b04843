"""
RMX Core Config — Public API
===============================
Admin-configurable engine thresholds.
Doctrine: No hardcoded bands or ceilings in engine logic.
"""

from core.config.loader import default_engine_config, load_engine_config
from core.config.rules import (
    OPTION_NAMES,
    CreditGateMode,
    EngineConfig,
)

__all__ = [
    "CreditGateMode",
    "EngineConfig",
    "OPTION_NAMES",
    "default_engine_config",
    "load_engine_config",
]
