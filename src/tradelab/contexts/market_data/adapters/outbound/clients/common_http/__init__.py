from .http_client import HttpClient, HttpResponse, RequestsHttpClient

__all__ = [
    "HttpClient",
    "HttpResponse",
    "RequestsHttpClient",
]
