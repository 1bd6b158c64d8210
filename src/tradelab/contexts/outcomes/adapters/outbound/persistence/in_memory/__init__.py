from .extended_outcome_repository import InMemoryExtendedOutcomeRepository
from .outcome_repository import InMemoryOutcomeRepository
from .signal_repository import InMemorySignalRepository

__all__ = [
    "InMemoryExtendedOutcomeRepository",
    "InMemoryOutcomeRepository",
    "InMemorySignalRepository",
]
