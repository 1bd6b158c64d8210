from __future__ import annotations

import logging
from dataclasses import dataclass

from tradelab.contexts.outcomes.application.ports import (
    OutcomeClock,
    OutcomeRepository,
    epoch_ms,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolveVersionGateReport:
    """
    ResolveVersionGateReport — result of one startup resolve-version gate application.
    """

    resolve_version: str
    applied: bool
    reset_rows: int


def resolve_version_marker_key(resolve_version: str) -> str:
    return f"resolve_version:{resolve_version}"


class ResolveVersionGate:
    """
    ResolveVersionGate — one-time reset of outcomes computed under an older resolve version.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/repositories/outcome_repository.py
      - apps/worker/outcome_resolver/wiring/modules/outcome_resolver.py
    """

    def __init__(
        self,
        *,
        outcome_repository: OutcomeRepository,
        resolve_version: str,
        clock: OutcomeClock,
    ) -> None:
        if outcome_repository is None:  # type: ignore[truthy-bool]
            raise ValueError("ResolveVersionGate requires outcome_repository")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("ResolveVersionGate requires clock")
        if not resolve_version.strip():
            raise ValueError("ResolveVersionGate.resolve_version must be non-empty")
        self._outcome_repository = outcome_repository
        self._resolve_version = resolve_version.strip()
        self._clock = clock

    def apply(self) -> ResolveVersionGateReport:
        """
        Reset stale rows once per resolve version and record the marker.

        Args:
            None.
        Returns:
            ResolveVersionGateReport: Whether reset ran and how many rows it touched.
        Assumptions:
            Reset and marker insertion happen in one storage operation, so a crash never
            leaves a marker without reset. With the marker already present (rollback to an
            earlier version) only complete rows of other versions are reset.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            May rewrite many outcome rows and insert one meta marker.
        """
        marker_key = resolve_version_marker_key(self._resolve_version)
        if self._outcome_repository.find_meta(key=marker_key) is not None:
            reset_rows = self._outcome_repository.reset_for_resolve_version(
                resolve_version=self._resolve_version,
                marker_key=marker_key,
                marked_at=epoch_ms(self._clock.now()),
                complete_only=True,
            )
            if reset_rows:
                log.info(
                    "outcome resolve version gate reset foreign complete rows "
                    "resolve_version=%s reset_rows=%s",
                    self._resolve_version,
                    reset_rows,
                )
            return ResolveVersionGateReport(
                resolve_version=self._resolve_version,
                applied=False,
                reset_rows=reset_rows,
            )

        reset_rows = self._outcome_repository.reset_for_resolve_version(
            resolve_version=self._resolve_version,
            marker_key=marker_key,
            marked_at=epoch_ms(self._clock.now()),
        )
        log.info(
            "outcome resolve version gate applied resolve_version=%s reset_rows=%s",
            self._resolve_version,
            reset_rows,
        )
        return ResolveVersionGateReport(
            resolve_version=self._resolve_version,
            applied=True,
            reset_rows=reset_rows,
        )
