from .entities import (
    OutcomeFilter,
    OutcomeIntegrityReport,
    OutcomeKey,
    OutcomeSkip,
    Signal,
    SignalOutcome,
    is_complete_outcome_state,
)
from .errors import OutcomeDomainError, OutcomeStorageError, SignalNotFoundError

__all__ = [
    "OutcomeDomainError",
    "OutcomeFilter",
    "OutcomeIntegrityReport",
    "OutcomeKey",
    "OutcomeSkip",
    "OutcomeStorageError",
    "Signal",
    "SignalNotFoundError",
    "SignalOutcome",
    "is_complete_outcome_state",
]
