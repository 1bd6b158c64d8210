from .outcome_policies import (
    ExtendedOutcomePolicy,
    OutcomeResolutionPolicy,
    OutcomeSchedulePolicy,
)

__all__ = [
    "ExtendedOutcomePolicy",
    "OutcomeResolutionPolicy",
    "OutcomeSchedulePolicy",
]
