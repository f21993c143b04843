"""
RMX Core Time — Public API
============================
Injectable clock and calendar helpers.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
    get_default_clock,
    set_default_clock,
)
from core.time.temporal import (
    add_days,
    as_date,
    days_overdue,
    month_key,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "get_default_clock",
    "set_default_clock",
    "add_days",
    "as_date",
    "days_overdue",
    "month_key",
]
