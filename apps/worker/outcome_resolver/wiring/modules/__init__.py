from .outcome_resolver import (
    OutcomeResolverApp,
    OutcomeResolverMetrics,
    build_outcome_resolver_app,
)

__all__ = [
    "OutcomeResolverApp",
    "OutcomeResolverMetrics",
    "build_outcome_resolver_app",
]
