from __future__ import annotations

import logging

from tradelab.contexts.outcomes.application.ports import OutcomeRepository
from tradelab.contexts.outcomes.domain.entities import OutcomeIntegrityReport

log = logging.getLogger(__name__)

_MS_PER_DAY = 86_400_000


class OutcomeIntegrityChecker:
    """
    OutcomeIntegrityChecker — audits lifecycle invariants of recently resolved outcome rows.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/domain/entities/outcome_integrity_report.py
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
    """

    def __init__(
        self,
        *,
        outcome_repository: OutcomeRepository,
        resolve_version: str,
        lookback_days: int,
    ) -> None:
        if outcome_repository is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeIntegrityChecker requires outcome_repository")
        if not resolve_version.strip():
            raise ValueError("OutcomeIntegrityChecker.resolve_version must be non-empty")
        if lookback_days <= 0:
            raise ValueError("OutcomeIntegrityChecker.lookback_days must be > 0")
        self._outcome_repository = outcome_repository
        self._resolve_version = resolve_version.strip()
        self._lookback_days = lookback_days

    def check(self, *, now_ms: int) -> OutcomeIntegrityReport:
        """
        Count violations over rows resolved within lookback and log them as warnings.

        Args:
            now_ms: Current timestamp (epoch ms).
        Returns:
            OutcomeIntegrityReport: Violation counters.
        Assumptions:
            Violations are reported, never raised.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Emits one warning log line when report is not clean.
        """
        since_ms = max(0, now_ms - self._lookback_days * _MS_PER_DAY)
        report = self._outcome_repository.count_integrity_violations(
            resolve_version=self._resolve_version,
            resolved_since_ms=since_ms,
        )
        if not report.ok:
            log.warning(
                "outcome integrity violations resolve_version=%s since_ms=%s violations=%s",
                self._resolve_version,
                since_ms,
                report.violations(),
            )
        return report
