from __future__ import annotations

from tradelab.contexts.outcomes.application.ports import CandleFetcher
from tradelab.shared_kernel.primitives import Candle


class PassCandleCache(CandleFetcher):
    """
    PassCandleCache — per-pass memoizing decorator over candle-supplying service.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
      - src/tradelab/contexts/outcomes/application/ports/candle_fetcher.py
    """

    def __init__(self, *, fetcher: CandleFetcher, max_limit: int = 1000) -> None:
        """
        Initialize empty cache bound to one batch pass.

        Args:
            fetcher: Underlying candle-supplying service.
            max_limit: Provider page size cap applied to requested limits.
        Returns:
            None.
        Assumptions:
            Cache lifetime equals one scheduler pass; stale data is never reused across passes.
        Raises:
            ValueError: If fetcher is missing or limit is not positive.
        Side Effects:
            None.
        """
        if fetcher is None:  # type: ignore[truthy-bool]
            raise ValueError("PassCandleCache requires fetcher")
        if max_limit <= 0:
            raise ValueError("PassCandleCache.max_limit must be > 0")
        self._fetcher = fetcher
        self._max_limit = max_limit
        self._entries: dict[tuple[str, int, int, int], tuple[Candle, ...]] = {}
        self.provider_calls = 0
        self.cache_hits = 0

    def fetch(
        self,
        *,
        symbol: str,
        interval_min: int,
        start_time_ms: int,
        limit: int,
    ) -> tuple[Candle, ...]:
        """
        Return cached candles for `(symbol, interval, start, capped limit)` or fetch once.

        Args:
            symbol: Instrument symbol.
            interval_min: Candle interval in minutes.
            start_time_ms: Inclusive start open time.
            limit: Requested candle count, capped to `[1, max_limit]`.
        Returns:
            tuple[Candle, ...]: Provider candles.
        Assumptions:
            Failed fetches are not cached.
        Raises:
            Exception: Propagates provider errors.
        Side Effects:
            Calls provider on cache miss.
        """
        capped_limit = max(1, min(self._max_limit, limit))
        key = (symbol, interval_min, start_time_ms, capped_limit)
        cached = self._entries.get(key)
        if cached is not None:
            self.cache_hits += 1
            return cached

        self.provider_calls += 1
        candles = tuple(
            self._fetcher.fetch(
                symbol=symbol,
                interval_min=interval_min,
                start_time_ms=start_time_ms,
                limit=capped_limit,
            )
        )
        self._entries[key] = candles
        return candles
