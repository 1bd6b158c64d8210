from __future__ import annotations

import logging
from typing import Sequence

from tradelab.contexts.outcomes.application.ports import (
    OutcomeClock,
    OutcomeRepository,
    epoch_ms,
)
from tradelab.contexts.outcomes.application.services.batch_scheduler import (
    OutcomeBatchReport,
    OutcomeBatchScheduler,
)
from tradelab.contexts.outcomes.domain.entities import OutcomeFilter, OutcomeKey

log = logging.getLogger(__name__)

USER_DELETE_REASON = "user_delete"


class OutcomeAdminService:
    """
    OutcomeAdminService — operator actions over outcome rows (manual pass, delete, rebuild).

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
      - src/tradelab/contexts/outcomes/application/ports/repositories/outcome_repository.py
    """

    def __init__(
        self,
        *,
        outcome_repository: OutcomeRepository,
        scheduler: OutcomeBatchScheduler,
        clock: OutcomeClock,
    ) -> None:
        if outcome_repository is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeAdminService requires outcome_repository")
        if scheduler is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeAdminService requires scheduler")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeAdminService requires clock")
        self._outcome_repository = outcome_repository
        self._scheduler = scheduler
        self._clock = clock

    def run_once(self) -> OutcomeBatchReport:
        """Trigger one scheduler pass; skipped when the loop is already running one."""
        return self._scheduler.run_once()

    def delete_outcome(self, *, signal_id: int, horizon_min: int) -> int:
        return self.delete_outcomes(
            keys=(OutcomeKey(signal_id=signal_id, horizon_min=horizon_min),)
        )

    def delete_outcomes(self, *, keys: Sequence[OutcomeKey]) -> int:
        """
        Delete outcome rows and record skip markers so they are never recomputed.

        Args:
            keys: Outcome keys to delete.
        Returns:
            int: Number of deleted outcome rows.
        Assumptions:
            Duplicate keys are collapsed; empty input is a no-op.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Inserts skip rows and deletes outcome rows.
        """
        unique_keys = tuple(dict.fromkeys(keys))
        if not unique_keys:
            return 0
        deleted = self._outcome_repository.delete_outcomes(
            keys=unique_keys,
            reason=USER_DELETE_REASON,
            created_at=epoch_ms(self._clock.now()),
        )
        log.info("outcome rows deleted keys=%s deleted=%s", len(unique_keys), deleted)
        return deleted

    def delete_outcomes_by_filter(self, *, outcome_filter: OutcomeFilter) -> int:
        deleted = self._outcome_repository.delete_outcomes_by_filter(
            outcome_filter=outcome_filter,
            reason=USER_DELETE_REASON,
            created_at=epoch_ms(self._clock.now()),
        )
        log.info("outcome rows deleted by filter filter=%s deleted=%s", outcome_filter, deleted)
        return deleted

    def rebuild_outcomes_by_filter(self, *, outcome_filter: OutcomeFilter) -> int:
        """
        Reset matched complete rows so the next scheduler pass recomputes them.

        Args:
            outcome_filter: Row selection.
        Returns:
            int: Number of reset rows.
        Assumptions:
            Rows are not recomputed inline; the scheduler owns computation.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Updates outcome rows.
        """
        reset = self._outcome_repository.rebuild_outcomes_by_filter(outcome_filter=outcome_filter)
        log.info("outcome rows queued for rebuild filter=%s reset=%s", outcome_filter, reset)
        return reset
