from __future__ import annotations

from dataclasses import replace

from tradelab.contexts.outcomes.application.ports.repositories import SignalRepository
from tradelab.contexts.outcomes.domain.entities import Signal


class InMemorySignalRepository(SignalRepository):
    """
    InMemorySignalRepository — deterministic in-memory SignalRepository adapter.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/repositories/signal_repository.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/in_memory/
        outcome_repository.py
      - tests/unit/contexts/outcomes/application
    """

    def __init__(self) -> None:
        self._signals_by_id: dict[int, Signal] = {}
        self._ids_by_natural_key: dict[tuple[str, str, int, str], int] = {}
        self._next_id = 1

    def record(self, *, signal: Signal) -> Signal:
        """
        Insert signal or refresh existing row with the same natural key.

        Args:
            signal: Signal snapshot; `signal_id` is ignored.
        Returns:
            Signal: Stored snapshot with assigned id.
        Assumptions:
            Ids are assigned sequentially starting at 1.
        Raises:
            None.
        Side Effects:
            Mutates in-memory dictionaries.
        """
        natural_key = (signal.symbol, signal.category, signal.time, signal.config_hash)
        existing_id = self._ids_by_natural_key.get(natural_key)
        if existing_id is None:
            stored = replace(signal, signal_id=self._next_id)
            self._ids_by_natural_key[natural_key] = self._next_id
            self._next_id += 1
        else:
            existing = self._signals_by_id[existing_id]
            stored = replace(signal, signal_id=existing_id, created_at=existing.created_at)
        assert stored.signal_id is not None
        self._signals_by_id[stored.signal_id] = stored
        return stored

    def find_by_id(self, *, signal_id: int) -> Signal | None:
        return self._signals_by_id.get(signal_id)

    def list_all(self) -> tuple[Signal, ...]:
        """Return stored signals ordered by id."""
        return tuple(self._signals_by_id[signal_id] for signal_id in sorted(self._signals_by_id))
