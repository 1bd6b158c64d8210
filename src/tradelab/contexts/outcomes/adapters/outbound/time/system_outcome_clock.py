from __future__ import annotations

from datetime import datetime, timezone

from tradelab.contexts.outcomes.application.ports.clock import OutcomeClock


class SystemOutcomeClock(OutcomeClock):
    """
    SystemOutcomeClock — wall-clock OutcomeClock adapter returning current UTC datetime.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/clock.py
      - apps/worker/outcome_resolver/wiring/modules/outcome_resolver.py
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
