from .extended_outcome import (
    EXTENDED_STATUSES,
    MANAGED_STATUSES,
    TERMINAL_EXTENDED_STATUSES,
    ExtendedOutcome,
    ExtendedStatus,
    ManagedStatus,
    RunnerExitReason,
)
from .outcome_filter import OutcomeFilter
from .outcome_integrity_report import OutcomeIntegrityReport
from .outcome_skip import OutcomeKey, OutcomeSkip
from .outcome_states import (
    COMPLETE_OUTCOME_STATES,
    ENTRY_RULES,
    REASON_API_ERROR,
    REASON_BAD_ALIGN,
    REASON_BAD_LEVELS,
    REASON_FUTURE_WINDOW,
    REASON_NO_DATA_IN_WINDOW,
    REASON_NO_PLAN,
    REASON_NOT_ENOUGH_BARS,
    REASON_RISK_TOO_SMALL,
    REASON_STALE_RESOLVE,
    EntryRule,
    ExitReason,
    ExpiredReason,
    OutcomeState,
    TradeResult,
    TradeState,
    WindowStatus,
    is_complete_outcome_state,
)
from .signal import Signal
from .signal_outcome import SignalOutcome

__all__ = [
    "COMPLETE_OUTCOME_STATES",
    "ENTRY_RULES",
    "EXTENDED_STATUSES",
    "EntryRule",
    "ExitReason",
    "ExpiredReason",
    "ExtendedOutcome",
    "ExtendedStatus",
    "MANAGED_STATUSES",
    "ManagedStatus",
    "OutcomeFilter",
    "OutcomeIntegrityReport",
    "OutcomeKey",
    "OutcomeSkip",
    "OutcomeState",
    "REASON_API_ERROR",
    "REASON_BAD_ALIGN",
    "REASON_BAD_LEVELS",
    "REASON_FUTURE_WINDOW",
    "REASON_NOT_ENOUGH_BARS",
    "REASON_NO_DATA_IN_WINDOW",
    "REASON_NO_PLAN",
    "REASON_RISK_TOO_SMALL",
    "REASON_STALE_RESOLVE",
    "RunnerExitReason",
    "Signal",
    "SignalOutcome",
    "TERMINAL_EXTENDED_STATUSES",
    "TradeResult",
    "TradeState",
    "WindowStatus",
    "is_complete_outcome_state",
]
