from __future__ import annotations

import math
from typing import Any, Mapping

from tradelab.contexts.outcomes.domain.entities import Signal

_BEST_ENTRY = "BEST_ENTRY"
_READY_TO_BUY = "READY_TO_BUY"
_CONTRA_TREND_CATEGORIES = frozenset({_BEST_ENTRY, _READY_TO_BUY})


def classify_outcome_driver(*, signal: Signal) -> str:
    """
    Attribute a best-effort failure driver tag to a stopped-out signal.

    Args:
        signal: Signal whose trade failed at stop.
    Returns:
        str: First matching tag of `RR_BELOW_MIN`, `VWAP_TOO_FAR`, `NO_SWEEP`,
        `VOL_SPIKE_NOT_MET`, `RSI_NOT_IN_WINDOW`, `BTC_CONTRA_TREND`, `SESSION_OFF`,
        or `OTHER`.
    Assumptions:
        Thresholds are replayed from the detector config snapshot stored with the signal;
        checks with missing inputs never match. Tag is diagnostic only.
    Raises:
        None.
    Side Effects:
        None.
    """
    env = signal.config_env()
    thresholds = signal.config_thresholds()
    best = signal.category == _BEST_ENTRY

    rr_min = _env_number(env, "RR_MIN_BEST", fallback=signal.rr_est) if best else _env_number(
        env, "READY_MIN_RR"
    )
    vwap_max = _env_number(env, "BEST_VWAP_MAX_PCT" if best else "READY_VWAP_MAX_PCT")
    rsi_min = _env_number(env, "RSI_BEST_MIN" if best else "RSI_READY_MIN")
    rsi_max = _env_number(env, "RSI_BEST_MAX" if best else "RSI_READY_MAX")
    vol_spike_min = _to_finite(thresholds.get("volSpikeX"))
    if vol_spike_min is None:
        vol_spike_min = _env_number(env, "THRESHOLD_VOL_SPIKE_X")

    rr = _to_finite(signal.rr)
    delta_vwap_pct = _to_finite(signal.delta_vwap_pct)
    vol_spike = _to_finite(signal.vol_spike)
    rsi = _to_finite(signal.rsi9)

    if rr is not None and rr_min is not None and rr < rr_min:
        return "RR_BELOW_MIN"
    if delta_vwap_pct is not None and vwap_max is not None and abs(delta_vwap_pct) > vwap_max:
        return "VWAP_TOO_FAR"
    if signal.sweep_ok is False:
        return "NO_SWEEP"
    if vol_spike is not None and vol_spike_min is not None and vol_spike < vol_spike_min:
        return "VOL_SPIKE_NOT_MET"
    if (
        rsi is not None
        and rsi_min is not None
        and rsi_max is not None
        and (rsi < rsi_min or rsi > rsi_max)
    ):
        return "RSI_NOT_IN_WINDOW"
    if signal.btc_bear is True and signal.category in _CONTRA_TREND_CATEGORIES:
        return "BTC_CONTRA_TREND"
    if signal.session_ok is False:
        return "SESSION_OFF"
    return "OTHER"


def _env_number(
    env: Mapping[str, Any],
    key: str,
    *,
    fallback: float | None = None,
) -> float | None:
    value = _to_finite(env.get(key))
    if value is not None:
        return value
    return _to_finite(fallback)


def _to_finite(value: Any) -> float | None:
    """Convert loosely typed snapshot value to finite float or `None`."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number
