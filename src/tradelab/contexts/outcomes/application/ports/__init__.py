from .candle_fetcher import CandleFetcher
from .clock import OutcomeClock, epoch_ms
from .repositories import ExtendedOutcomeRepository, OutcomeRepository, SignalRepository
from .sleeper import OutcomeSleeper

__all__ = [
    "CandleFetcher",
    "ExtendedOutcomeRepository",
    "OutcomeClock",
    "OutcomeRepository",
    "OutcomeSleeper",
    "SignalRepository",
    "epoch_ms",
]
