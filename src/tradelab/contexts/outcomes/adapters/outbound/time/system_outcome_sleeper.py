from __future__ import annotations

import time

from tradelab.contexts.outcomes.application.ports.sleeper import OutcomeSleeper


class SystemOutcomeSleeper(OutcomeSleeper):
    """
    SystemOutcomeSleeper — blocking sleeper used for pacing between candle-fetching resolutions.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/sleeper.py
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
    """

    def sleep(self, *, seconds: float) -> None:
        """
        Sleep current thread for provided non-negative duration.

        Args:
            seconds: Sleep duration in seconds.
        Returns:
            None.
        Assumptions:
            Pacing durations are bounded by schedule policy.
        Raises:
            ValueError: If duration is negative.
        Side Effects:
            Blocks current thread.
        """
        if seconds < 0:
            raise ValueError("SystemOutcomeSleeper.seconds must be non-negative")
        if seconds == 0:
            return
        time.sleep(seconds)
