from .extended_outcome_repository import PostgresExtendedOutcomeRepository
from .gateway import OutcomesPostgresGateway, PsycopgOutcomesPostgresGateway
from .outcome_repository import PostgresOutcomeRepository
from .signal_repository import PostgresSignalRepository

__all__ = [
    "OutcomesPostgresGateway",
    "PostgresExtendedOutcomeRepository",
    "PostgresOutcomeRepository",
    "PostgresSignalRepository",
    "PsycopgOutcomesPostgresGateway",
]
