from __future__ import annotations

from typing import Any

from tradelab.contexts.market_data.adapters.outbound.clients.common_http import HttpClient
from tradelab.contexts.outcomes.application.ports import CandleFetcher
from tradelab.shared_kernel.primitives import Candle, Symbol, Timeframe

_SPOT_KLINES_PATH = "/api/v3/klines"
_FUTURES_KLINES_PATH = "/fapi/v1/klines"
_MAX_LIMIT = 1000


class BinanceKlineCandleFetcher(CandleFetcher):
    """
    CandleFetcher поверх Binance REST klines.

    - spot: GET /api/v3/klines, futures (USD-M): GET /fapi/v1/klines
    - запрос: symbol, interval (код таймфрейма), startTime, limit (не больше 1000)
    - результат отсортирован по open_time, дубликаты open_time отброшены
    """

    def __init__(
        self,
        *,
        http: HttpClient,
        base_url: str,
        timeout_s: float,
        retries: int,
        backoff_base_s: float,
        backoff_max_s: float,
        backoff_jitter_s: float,
        market_type: str = "spot",
    ) -> None:
        if http is None:  # type: ignore[truthy-bool]
            raise ValueError("BinanceKlineCandleFetcher requires http")
        normalized_base = base_url.strip().rstrip("/")
        if not normalized_base:
            raise ValueError("BinanceKlineCandleFetcher requires non-empty base_url")
        if market_type not in ("spot", "futures"):
            raise ValueError(f"market_type must be 'spot' or 'futures', got {market_type!r}")
        self._http = http
        self._url = normalized_base + (
            _FUTURES_KLINES_PATH if market_type == "futures" else _SPOT_KLINES_PATH
        )
        self._timeout_s = timeout_s
        self._retries = retries
        self._backoff_base_s = backoff_base_s
        self._backoff_max_s = backoff_max_s
        self._backoff_jitter_s = backoff_jitter_s

    def fetch(
        self,
        *,
        symbol: str,
        interval_min: int,
        start_time_ms: int,
        limit: int,
    ) -> tuple[Candle, ...]:
        timeframe = Timeframe.from_minutes(interval_min)
        resp = self._http.get_json(
            url=self._url,
            params={
                "symbol": str(Symbol(symbol)),
                "interval": timeframe.code,
                "startTime": int(start_time_ms),
                "limit": max(1, min(_MAX_LIMIT, int(limit))),
            },
            timeout_s=self._timeout_s,
            retries=self._retries,
            backoff_base_s=self._backoff_base_s,
            backoff_max_s=self._backoff_max_s,
            backoff_jitter_s=self._backoff_jitter_s,
        )

        body = resp.body
        if not isinstance(body, list):
            raise RuntimeError(f"Unexpected Binance klines payload type: {type(body).__name__}")

        by_open_time: dict[int, Candle] = {}
        for item in body:
            candle = _map_binance_kline_item(item)
            by_open_time.setdefault(candle.open_time, candle)
        return tuple(by_open_time[open_time] for open_time in sorted(by_open_time))


def _map_binance_kline_item(item: Any) -> Candle:
    # Binance kline item:
    # [open_time, open, high, low, close, volume, close_time, quote_volume, trades, ...]
    if not isinstance(item, list) or len(item) < 7:
        raise RuntimeError(f"Invalid Binance kline item: {item!r}")
    return Candle(
        open_time=int(item[0]),
        open=float(item[1]),
        high=float(item[2]),
        low=float(item[3]),
        close=float(item[4]),
        volume=float(item[5]),
        close_time=int(item[6]),
    )
