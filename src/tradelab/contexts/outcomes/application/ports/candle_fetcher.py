from __future__ import annotations

from typing import Protocol

from tradelab.shared_kernel.primitives import Candle


class CandleFetcher(Protocol):
    """
    CandleFetcher — candle-supplying service contract consumed by the horizon resolver.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/market_data/adapters/outbound/clients/binance/
        kline_candle_fetcher.py
      - src/tradelab/contexts/outcomes/application/services/candle_cache.py
    """

    def fetch(
        self,
        *,
        symbol: str,
        interval_min: int,
        start_time_ms: int,
        limit: int,
    ) -> tuple[Candle, ...]:
        """
        Fetch up to `limit` candles starting at `start_time_ms`, ordered by open time.

        Args:
            symbol: Normalized instrument symbol.
            interval_min: Candle interval in minutes.
            start_time_ms: Inclusive open-time lower bound (epoch ms).
            limit: Maximum number of candles.
        Returns:
            tuple[Candle, ...]: Candles ordered by open time ascending.
        Assumptions:
            Provider may return fewer candles than requested.
        Raises:
            Exception: Transient transport or rate-limit errors from implementation.
        Side Effects:
            Performs network IO in production adapters.
        """
        ...
