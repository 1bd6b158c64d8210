from __future__ import annotations

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Iterable

from tradelab.contexts.outcomes.domain.entities.outcome_states import is_complete_outcome_state

if TYPE_CHECKING:
    from tradelab.contexts.outcomes.domain.entities.signal_outcome import SignalOutcome

AMBIGUOUS_OUTCOME_STATE = "COMPLETE_AMBIGUOUS_TP_AND_SL_SAME_CANDLE"
EXPIRED_CHECKPOINT_MS = 15 * 60_000


@dataclass(frozen=True, slots=True)
class OutcomeIntegrityReport:
    """
    OutcomeIntegrityReport — dataset-wide lifecycle invariant violation counters.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/integrity_checker.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        outcome_repository.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/in_memory/
        outcome_repository.py
    """

    stale_complete: int = 0
    missing_resolved_at: int = 0
    missing_resolve_version: int = 0
    missing_exit_reason: int = 0
    bad_bars_to_exit: int = 0
    bad_timeout_rows: int = 0
    bad_timeout_exit_time: int = 0
    bad_expired_exit_time: int = 0
    bad_ambiguous_rows: int = 0
    bad_ambiguous_missing_hits: int = 0
    resolved_not_complete: int = 0

    def __post_init__(self) -> None:
        for item in fields(self):
            if getattr(self, item.name) < 0:
                raise ValueError(f"OutcomeIntegrityReport.{item.name} must be >= 0")

    @classmethod
    def from_outcomes(
        cls,
        *,
        outcomes: Iterable[SignalOutcome],
        resolve_version: str,
    ) -> OutcomeIntegrityReport:
        """
        Count violations over already scoped outcome rows.

        Args:
            outcomes: Rows to audit.
            resolve_version: Current resolve version.
        Returns:
            OutcomeIntegrityReport: Violation counters.
        Assumptions:
            Same predicates as the Postgres aggregate query.
        Raises:
            None.
        Side Effects:
            None.
        """
        counts = {item.name: 0 for item in fields(cls)}
        for outcome in outcomes:
            for name in _violated_checks(outcome=outcome, resolve_version=resolve_version):
                counts[name] += 1
        return cls(**counts)

    @property
    def ok(self) -> bool:
        return all(count == 0 for count in self.as_dict().values())

    def as_dict(self) -> dict[str, int]:
        return {item.name: int(getattr(self, item.name)) for item in fields(self)}

    def violations(self) -> dict[str, int]:
        """Return only non-zero checks, in declaration order."""
        return {name: count for name, count in self.as_dict().items() if count}


def _violated_checks(*, outcome: SignalOutcome, resolve_version: str) -> tuple[str, ...]:
    complete = is_complete_outcome_state(outcome.outcome_state)
    if not complete:
        return ("resolved_not_complete",) if outcome.resolved_at != 0 else ()

    violated: list[str] = []
    if outcome.resolve_version is not None and outcome.resolve_version != resolve_version:
        violated.append("stale_complete")
    if outcome.resolved_at == 0:
        violated.append("missing_resolved_at")
    if outcome.resolve_version is None:
        violated.append("missing_resolve_version")
    if outcome.exit_reason is None:
        violated.append("missing_exit_reason")
    if outcome.bars_to_exit <= 0 or outcome.bars_to_exit > outcome.n_candles:
        violated.append("bad_bars_to_exit")
    if outcome.exit_reason == "TIMEOUT":
        if outcome.bars_to_exit != outcome.n_candles:
            violated.append("bad_timeout_rows")
        if outcome.exit_time != outcome.end_time:
            violated.append("bad_timeout_exit_time")
    if (
        outcome.exit_reason == "EXPIRED_AFTER_15M"
        and outcome.exit_time != outcome.start_time + EXPIRED_CHECKPOINT_MS
    ):
        violated.append("bad_expired_exit_time")
    if outcome.outcome_state == AMBIGUOUS_OUTCOME_STATE:
        if not outcome.ambiguous:
            violated.append("bad_ambiguous_rows")
        if outcome.sl_hit_time == 0 or (outcome.tp1_hit_time == 0 and outcome.tp2_hit_time == 0):
            violated.append("bad_ambiguous_missing_hits")
    return tuple(violated)
