from .outbound import (
    InMemoryExtendedOutcomeRepository,
    InMemoryOutcomeRepository,
    InMemorySignalRepository,
    OutcomeResolverRuntimeConfig,
    PostgresExtendedOutcomeRepository,
    PostgresOutcomeRepository,
    PostgresSignalRepository,
    PsycopgOutcomesPostgresGateway,
    SystemOutcomeClock,
    SystemOutcomeSleeper,
    load_outcome_resolver_runtime_config,
)

__all__ = [
    "InMemoryExtendedOutcomeRepository",
    "InMemoryOutcomeRepository",
    "InMemorySignalRepository",
    "OutcomeResolverRuntimeConfig",
    "PostgresExtendedOutcomeRepository",
    "PostgresOutcomeRepository",
    "PostgresSignalRepository",
    "PsycopgOutcomesPostgresGateway",
    "SystemOutcomeClock",
    "SystemOutcomeSleeper",
    "load_outcome_resolver_runtime_config",
]
