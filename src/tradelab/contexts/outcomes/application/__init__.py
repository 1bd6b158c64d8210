from .dto import ExtendedOutcomePolicy, OutcomeResolutionPolicy, OutcomeSchedulePolicy
from .ports import (
    CandleFetcher,
    ExtendedOutcomeRepository,
    OutcomeClock,
    OutcomeRepository,
    OutcomeSleeper,
    SignalRepository,
    epoch_ms,
)
from .services import (
    ExtendedOutcomeTracker,
    ExtendedTrackerReport,
    HorizonOutcomeResolver,
    OutcomeAdminService,
    OutcomeBatchReport,
    OutcomeBatchScheduler,
    OutcomeIntegrityChecker,
    OutcomeSchedulerHealth,
    PassCandleCache,
    ResolveVersionGate,
    ResolveVersionGateReport,
)

__all__ = [
    "CandleFetcher",
    "ExtendedOutcomePolicy",
    "ExtendedOutcomeRepository",
    "ExtendedOutcomeTracker",
    "ExtendedTrackerReport",
    "HorizonOutcomeResolver",
    "OutcomeAdminService",
    "OutcomeBatchReport",
    "OutcomeBatchScheduler",
    "OutcomeClock",
    "OutcomeIntegrityChecker",
    "OutcomeRepository",
    "OutcomeResolutionPolicy",
    "OutcomeSchedulePolicy",
    "OutcomeSchedulerHealth",
    "OutcomeSleeper",
    "PassCandleCache",
    "ResolveVersionGate",
    "ResolveVersionGateReport",
    "SignalRepository",
    "epoch_ms",
]
