from .config import (
    OutcomeResolverCandleSourceConfig,
    OutcomeResolverRuntimeConfig,
    OutcomeResolverStorageConfig,
    load_outcome_resolver_runtime_config,
    resolve_outcome_resolver_config_path,
)
from .persistence import (
    InMemoryExtendedOutcomeRepository,
    InMemoryOutcomeRepository,
    InMemorySignalRepository,
    OutcomesPostgresGateway,
    PostgresExtendedOutcomeRepository,
    PostgresOutcomeRepository,
    PostgresSignalRepository,
    PsycopgOutcomesPostgresGateway,
)
from .time import SystemOutcomeClock, SystemOutcomeSleeper

__all__ = [
    "InMemoryExtendedOutcomeRepository",
    "InMemoryOutcomeRepository",
    "InMemorySignalRepository",
    "OutcomeResolverCandleSourceConfig",
    "OutcomeResolverRuntimeConfig",
    "OutcomeResolverStorageConfig",
    "OutcomesPostgresGateway",
    "PostgresExtendedOutcomeRepository",
    "PostgresOutcomeRepository",
    "PostgresSignalRepository",
    "PsycopgOutcomesPostgresGateway",
    "SystemOutcomeClock",
    "SystemOutcomeSleeper",
    "load_outcome_resolver_runtime_config",
    "resolve_outcome_resolver_config_path",
]
