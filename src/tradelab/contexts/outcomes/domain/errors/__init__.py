from .outcome_errors import OutcomeDomainError, OutcomeStorageError, SignalNotFoundError

__all__ = [
    "OutcomeDomainError",
    "OutcomeStorageError",
    "SignalNotFoundError",
]
