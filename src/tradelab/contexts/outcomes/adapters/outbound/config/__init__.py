from .outcome_resolver_runtime_config import (
    OutcomeResolverCandleSourceConfig,
    OutcomeResolverRuntimeConfig,
    OutcomeResolverStorageConfig,
    load_outcome_resolver_runtime_config,
    resolve_outcome_resolver_config_path,
)

__all__ = [
    "OutcomeResolverCandleSourceConfig",
    "OutcomeResolverRuntimeConfig",
    "OutcomeResolverStorageConfig",
    "load_outcome_resolver_runtime_config",
    "resolve_outcome_resolver_config_path",
]
