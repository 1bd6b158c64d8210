from .kline_candle_fetcher import BinanceKlineCandleFetcher

__all__ = [
    "BinanceKlineCandleFetcher",
]
