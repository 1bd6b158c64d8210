from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tradelab.contexts.outcomes.adapters.outbound.time import (
    SystemOutcomeClock,
    SystemOutcomeSleeper,
)
from tradelab.contexts.outcomes.adapters.outbound.time import system_outcome_sleeper
from tradelab.contexts.outcomes.application import epoch_ms


def test_system_clock_returns_timezone_aware_utc_now() -> None:
    before = datetime.now(timezone.utc)
    now = SystemOutcomeClock().now()
    after = datetime.now(timezone.utc)

    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)
    assert before <= now <= after


def test_epoch_ms_converts_utc_datetime() -> None:
    moment = datetime(2023, 11, 14, 22, 15, tzinfo=timezone.utc)

    assert epoch_ms(moment) == 1_700_000_100_000


def test_sleeper_delegates_to_time_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[float] = []
    monkeypatch.setattr(system_outcome_sleeper.time, "sleep", calls.append)
    sleeper = SystemOutcomeSleeper()

    sleeper.sleep(seconds=0.25)
    sleeper.sleep(seconds=0)

    assert calls == [0.25]


def test_sleeper_rejects_negative_duration() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        SystemOutcomeSleeper().sleep(seconds=-1)
