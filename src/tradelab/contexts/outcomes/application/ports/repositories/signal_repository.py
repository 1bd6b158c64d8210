from __future__ import annotations

from typing import Protocol

from tradelab.contexts.outcomes.domain.entities import Signal


class SignalRepository(Protocol):
    """
    SignalRepository — producer/reader port for immutable detection signals.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/signal_repository.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/in_memory/
        signal_repository.py
    """

    def record(self, *, signal: Signal) -> Signal:
        """
        Insert signal or refresh levels of existing one with the same natural key.

        Args:
            signal: Signal snapshot; `signal_id` is ignored on insert.
        Returns:
            Signal: Stored snapshot with assigned `signal_id`.
        Assumptions:
            Natural key is `(symbol, category, time, config_hash)`.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Writes one signal row; existing rows get new `updated_at`.
        """
        ...

    def find_by_id(self, *, signal_id: int) -> Signal | None:
        """
        Find one signal by storage id.

        Args:
            signal_id: Storage identifier.
        Returns:
            Signal | None: Snapshot or `None`.
        Assumptions:
            None.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            None.
        """
        ...
