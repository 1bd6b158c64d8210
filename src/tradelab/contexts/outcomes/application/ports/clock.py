from __future__ import annotations

from datetime import datetime
from typing import Protocol


class OutcomeClock(Protocol):
    """
    OutcomeClock — application port providing timezone-aware UTC timestamps.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/adapters/outbound/time/system_outcome_clock.py
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
    """

    def now(self) -> datetime:
        """
        Return current timezone-aware UTC timestamp.

        Args:
            None.
        Returns:
            datetime: Current UTC timestamp.
        Assumptions:
            Returned datetime is timezone-aware with zero UTC offset.
        Raises:
            ValueError: If implementation cannot provide valid UTC datetime.
        Side Effects:
            None.
        """
        ...


def epoch_ms(value: datetime) -> int:
    """
    Convert timezone-aware datetime to epoch milliseconds.

    Args:
        value: Timezone-aware datetime.
    Returns:
        int: Milliseconds since Unix epoch, truncated.
    Assumptions:
        Naive datetimes are rejected to avoid local-time ambiguity.
    Raises:
        ValueError: If datetime is naive.
    Side Effects:
        None.
    """
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("epoch_ms requires timezone-aware datetime")
    return int(value.timestamp() * 1000)
