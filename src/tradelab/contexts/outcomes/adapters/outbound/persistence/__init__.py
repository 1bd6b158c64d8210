from .in_memory import (
    InMemoryExtendedOutcomeRepository,
    InMemoryOutcomeRepository,
    InMemorySignalRepository,
)
from .postgres import (
    OutcomesPostgresGateway,
    PostgresExtendedOutcomeRepository,
    PostgresOutcomeRepository,
    PostgresSignalRepository,
    PsycopgOutcomesPostgresGateway,
)

__all__ = [
    "InMemoryExtendedOutcomeRepository",
    "InMemoryOutcomeRepository",
    "InMemorySignalRepository",
    "OutcomesPostgresGateway",
    "PostgresExtendedOutcomeRepository",
    "PostgresOutcomeRepository",
    "PostgresSignalRepository",
    "PsycopgOutcomesPostgresGateway",
]
