from .clients import BinanceKlineCandleFetcher, RequestsHttpClient

__all__ = [
    "BinanceKlineCandleFetcher",
    "RequestsHttpClient",
]
