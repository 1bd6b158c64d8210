from .binance import BinanceKlineCandleFetcher
from .common_http import HttpClient, HttpResponse, RequestsHttpClient

__all__ = [
    "BinanceKlineCandleFetcher",
    "HttpClient",
    "HttpResponse",
    "RequestsHttpClient",
]
