from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

import requests

log = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = frozenset({418, 429})


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status_code: int
    headers: Mapping[str, str]
    body: Any


class HttpClient(Protocol):
    def get_json(
        self,
        *,
        url: str,
        params: Mapping[str, Any],
        timeout_s: float,
        retries: int,
        backoff_base_s: float,
        backoff_max_s: float,
        backoff_jitter_s: float,
    ) -> HttpResponse:
        ...


class RequestsHttpClient(HttpClient):
    """
    HTTP клиент поверх requests.Session для REST-запросов к провайдеру свечей.

    - 418/429/5xx и сетевые ошибки повторяются с экспоненциальным backoff и jitter
    - прочие не-200 ответы считаются ошибкой сразу, без повторов
    - после исчерпания попыток поднимается RuntimeError с последней причиной
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        self._sleep = sleep

    def get_json(
        self,
        *,
        url: str,
        params: Mapping[str, Any],
        timeout_s: float,
        retries: int,
        backoff_base_s: float,
        backoff_max_s: float,
        backoff_jitter_s: float,
    ) -> HttpResponse:
        last_error: Exception | None = None

        for attempt in range(max(0, retries) + 1):
            if attempt > 0:
                self._sleep(
                    _backoff_delay_s(
                        attempt=attempt - 1,
                        base_s=backoff_base_s,
                        max_s=backoff_max_s,
                        jitter_s=backoff_jitter_s,
                    )
                )
            try:
                response = self._session.get(url, params=dict(params), timeout=timeout_s)
            except requests.RequestException as error:
                last_error = error
                log.warning("http request failed url=%s attempt=%s error=%s", url, attempt, error)
                continue

            status_code = response.status_code
            if status_code in _RETRYABLE_STATUS_CODES or 500 <= status_code <= 599:
                last_error = RuntimeError(f"HTTP {status_code} for {url}")
                log.warning("http retryable status url=%s status=%s attempt=%s", url, status_code, attempt)  # noqa: E501
                continue

            if status_code != 200:
                raise RuntimeError(f"HTTP {status_code} for {url} params={dict(params)} body={response.text[:500]}")  # noqa: E501

            try:
                body = response.json()
            except ValueError as error:
                raise RuntimeError(f"Invalid JSON from {url}: {response.text[:500]}") from error

            headers = {str(key): str(value) for key, value in response.headers.items()}
            return HttpResponse(status_code=status_code, headers=headers, body=body)

        raise RuntimeError(f"HTTP request failed after retries url={url} params={dict(params)}") from last_error  # noqa: E501


def _backoff_delay_s(*, attempt: int, base_s: float, max_s: float, jitter_s: float) -> float:
    exp = min(max_s, base_s * (2**attempt))
    return exp + random.random() * jitter_s
