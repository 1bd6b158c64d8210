from __future__ import annotations


class OutcomeDomainError(ValueError):
    """
    Base deterministic domain error for the outcome resolution bounded context.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/domain/entities/signal_outcome.py
      - src/tradelab/contexts/outcomes/domain/entities/signal.py
    """


class OutcomeStorageError(OutcomeDomainError):
    """
    Raised when outcome persistence adapter fails or returns malformed rows.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        outcome_repository.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        signal_repository.py
      - alembic/versions/20261016_0001_signal_outcomes_v1.py
    """


class SignalNotFoundError(OutcomeDomainError):
    """
    Raised when an operation references a signal id absent from signal storage.
    """
