from .extended_outcome_repository import ExtendedOutcomeRepository
from .outcome_repository import OutcomeRepository
from .signal_repository import SignalRepository

__all__ = [
    "ExtendedOutcomeRepository",
    "OutcomeRepository",
    "SignalRepository",
]
