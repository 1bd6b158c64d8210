from __future__ import annotations

from typing import Protocol


class OutcomeSleeper(Protocol):
    """
    OutcomeSleeper — port for pacing delays between candle-fetching resolutions.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
      - src/tradelab/contexts/outcomes/adapters/outbound/time/system_outcome_sleeper.py
    """

    def sleep(self, *, seconds: float) -> None:
        """
        Sleep for provided non-negative duration.

        Args:
            seconds: Sleep duration in seconds.
        Returns:
            None.
        Assumptions:
            Durations are bounded by schedule policy.
        Raises:
            ValueError: If duration is negative.
        Side Effects:
            Blocks current thread in production adapter.
        """
        ...
