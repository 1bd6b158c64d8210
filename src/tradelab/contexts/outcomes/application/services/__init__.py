from .batch_scheduler import OutcomeBatchReport, OutcomeBatchScheduler, OutcomeSchedulerHealth
from .candle_cache import PassCandleCache
from .extended_evaluator import ExtendedEvaluation, evaluate_extended_outcome
from .extended_tracker import ExtendedOutcomeTracker, ExtendedTrackerReport
from .horizon_resolver import HorizonOutcomeResolver
from .integrity_checker import OutcomeIntegrityChecker
from .managed_pnl import ManagedPnl, evaluate_managed_pnl
from .outcome_admin import USER_DELETE_REASON, OutcomeAdminService
from .outcome_driver import classify_outcome_driver
from .resolve_version_gate import (
    ResolveVersionGate,
    ResolveVersionGateReport,
    resolve_version_marker_key,
)
from .trade_simulator import TradeSimulation, simulate_trade
from .window_evaluator import (
    OutcomeWindow,
    WindowAssessment,
    evaluate_outcome_window,
    plan_outcome_window,
)

__all__ = [
    "ExtendedEvaluation",
    "ExtendedOutcomeTracker",
    "ExtendedTrackerReport",
    "HorizonOutcomeResolver",
    "ManagedPnl",
    "OutcomeAdminService",
    "OutcomeBatchReport",
    "OutcomeBatchScheduler",
    "OutcomeIntegrityChecker",
    "OutcomeSchedulerHealth",
    "OutcomeWindow",
    "PassCandleCache",
    "ResolveVersionGate",
    "ResolveVersionGateReport",
    "TradeSimulation",
    "USER_DELETE_REASON",
    "WindowAssessment",
    "classify_outcome_driver",
    "evaluate_extended_outcome",
    "evaluate_managed_pnl",
    "evaluate_outcome_window",
    "plan_outcome_window",
    "resolve_version_marker_key",
    "simulate_trade",
]
