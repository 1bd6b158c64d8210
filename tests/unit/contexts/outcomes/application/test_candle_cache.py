from __future__ import annotations

import pytest

from tradelab.contexts.outcomes.application import PassCandleCache
from tradelab.shared_kernel.primitives import Candle


class _CountingFetcher:
    def __init__(self, *, fail_times: int = 0) -> None:
        self.calls: list[tuple[str, int, int, int]] = []
        self._fail_times = fail_times

    def fetch(
        self,
        *,
        symbol: str,
        interval_min: int,
        start_time_ms: int,
        limit: int,
    ) -> list[Candle]:
        self.calls.append((symbol, interval_min, start_time_ms, limit))
        if self._fail_times > 0:
            self._fail_times -= 1
            raise RuntimeError("provider unavailable")
        return [
            Candle(open_time=start_time_ms, open=1.0, high=1.0, low=1.0, close=1.0),
        ]


def test_repeated_request_is_served_from_cache() -> None:
    fetcher = _CountingFetcher()
    cache = PassCandleCache(fetcher=fetcher)

    first = cache.fetch(symbol="BTCUSDT", interval_min=5, start_time_ms=0, limit=10)
    second = cache.fetch(symbol="BTCUSDT", interval_min=5, start_time_ms=0, limit=10)
    other = cache.fetch(symbol="ETHUSDT", interval_min=5, start_time_ms=0, limit=10)

    assert first == second
    assert isinstance(first, tuple)
    assert other[0].open_time == 0
    assert len(fetcher.calls) == 2
    assert cache.provider_calls == 2
    assert cache.cache_hits == 1


def test_limit_is_capped_and_capped_requests_share_entry() -> None:
    fetcher = _CountingFetcher()
    cache = PassCandleCache(fetcher=fetcher, max_limit=1000)

    cache.fetch(symbol="BTCUSDT", interval_min=5, start_time_ms=0, limit=1500)
    cache.fetch(symbol="BTCUSDT", interval_min=5, start_time_ms=0, limit=1000)
    cache.fetch(symbol="BTCUSDT", interval_min=5, start_time_ms=0, limit=0)

    assert fetcher.calls == [("BTCUSDT", 5, 0, 1000), ("BTCUSDT", 5, 0, 1)]
    assert cache.cache_hits == 1


def test_failed_fetch_is_not_cached() -> None:
    fetcher = _CountingFetcher(fail_times=1)
    cache = PassCandleCache(fetcher=fetcher)

    with pytest.raises(RuntimeError, match="provider unavailable"):
        cache.fetch(symbol="BTCUSDT", interval_min=5, start_time_ms=0, limit=10)
    candles = cache.fetch(symbol="BTCUSDT", interval_min=5, start_time_ms=0, limit=10)

    assert len(candles) == 1
    assert cache.provider_calls == 2
    assert cache.cache_hits == 0


def test_cache_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError, match="max_limit"):
        PassCandleCache(fetcher=_CountingFetcher(), max_limit=0)
