from __future__ import annotations

from typing import Literal

WindowStatus = Literal["PARTIAL", "COMPLETE", "INVALID"]

OutcomeState = Literal[
    "PENDING",
    "PARTIAL_NOT_ENOUGH_BARS",
    "COMPLETE_HIT_TP1",
    "COMPLETE_HIT_TP2",
    "COMPLETE_HIT_STOP",
    "COMPLETE_TIMEOUT_NO_HIT",
    "COMPLETE_AMBIGUOUS_TP_AND_SL_SAME_CANDLE",
    "INVALID",
]

TradeState = Literal[
    "PENDING",
    "COMPLETED_TP1",
    "COMPLETED_TP2",
    "FAILED_SL",
    "EXPIRED",
    "INVALIDATED",
]

TradeResult = Literal["WIN", "LOSS", "NONE", "PENDING"]

ExitReason = Literal["TP1", "TP2", "STOP", "TIMEOUT", "EXPIRED_AFTER_15M"]

ExpiredReason = Literal["STOP", "DRIFT", "STRUCTURE"]

EntryRule = Literal["signal_close", "signal_open", "next_open"]

WINDOW_STATUSES: frozenset[str] = frozenset({"PARTIAL", "COMPLETE", "INVALID"})
OUTCOME_STATES: frozenset[str] = frozenset(
    {
        "PENDING",
        "PARTIAL_NOT_ENOUGH_BARS",
        "COMPLETE_HIT_TP1",
        "COMPLETE_HIT_TP2",
        "COMPLETE_HIT_STOP",
        "COMPLETE_TIMEOUT_NO_HIT",
        "COMPLETE_AMBIGUOUS_TP_AND_SL_SAME_CANDLE",
        "INVALID",
    }
)
COMPLETE_OUTCOME_STATES: frozenset[str] = frozenset(
    state for state in OUTCOME_STATES if state.startswith("COMPLETE_")
)
TRADE_STATES: frozenset[str] = frozenset(
    {"PENDING", "COMPLETED_TP1", "COMPLETED_TP2", "FAILED_SL", "EXPIRED", "INVALIDATED"}
)
TRADE_RESULTS: frozenset[str] = frozenset({"WIN", "LOSS", "NONE", "PENDING"})
EXIT_REASONS: frozenset[str] = frozenset(
    {"TP1", "TP2", "STOP", "TIMEOUT", "EXPIRED_AFTER_15M"}
)
EXPIRED_REASONS: frozenset[str] = frozenset({"STOP", "DRIFT", "STRUCTURE"})
ENTRY_RULES: frozenset[str] = frozenset({"signal_close", "signal_open", "next_open"})

# Window / validation reasons stored in `invalid_reason`.
REASON_FUTURE_WINDOW = "FUTURE_WINDOW"
REASON_NOT_ENOUGH_BARS = "NOT_ENOUGH_BARS"
REASON_BAD_ALIGN = "BAD_ALIGN"
REASON_NO_DATA_IN_WINDOW = "NO_DATA_IN_WINDOW"
REASON_NO_PLAN = "NO_PLAN"
REASON_BAD_LEVELS = "BAD_LEVELS"
REASON_RISK_TOO_SMALL = "RISK_TOO_SMALL"
REASON_API_ERROR = "API_ERROR"
REASON_STALE_RESOLVE = "STALE_RESOLVE"


def is_complete_outcome_state(state: str) -> bool:
    """
    Check whether outcome state is one of terminal `COMPLETE_*` classifications.

    Args:
        state: Stored outcome state value.
    Returns:
        bool: True for resolved states.
    Assumptions:
        `INVALID` and `PENDING` are never treated as resolved.
    Raises:
        None.
    Side Effects:
        None.
    """
    return state in COMPLETE_OUTCOME_STATES
