from .system_outcome_clock import SystemOutcomeClock
from .system_outcome_sleeper import SystemOutcomeSleeper

__all__ = [
    "SystemOutcomeClock",
    "SystemOutcomeSleeper",
]
