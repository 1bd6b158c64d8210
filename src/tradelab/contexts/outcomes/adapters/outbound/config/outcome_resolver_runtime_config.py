from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from tradelab.contexts.outcomes.application.dto import (
    ExtendedOutcomePolicy,
    OutcomeResolutionPolicy,
    OutcomeSchedulePolicy,
)
from tradelab.contexts.outcomes.domain.entities import (
    REASON_API_ERROR,
    REASON_BAD_ALIGN,
    REASON_NO_DATA_IN_WINDOW,
    REASON_NOT_ENOUGH_BARS,
)

_ENV_NAME_KEY = "ROEHUB_ENV"
_OUTCOME_RESOLVER_CONFIG_PATH_KEY = "OUTCOME_RESOLVER_CONFIG"
_ALLOWED_ENVS = ("dev", "prod", "test")

_DEFAULT_HORIZONS_MIN = (15, 30, 60, 120, 240)
_DEFAULT_TRACKED_CATEGORIES = ("BEST_ENTRY", "READY_TO_BUY")
_DEFAULT_RETRY_REASONS = (
    REASON_API_ERROR,
    REASON_BAD_ALIGN,
    REASON_NO_DATA_IN_WINDOW,
    REASON_NOT_ENOUGH_BARS,
)


@dataclass(frozen=True, slots=True)
class OutcomeResolverStorageConfig:
    """
    OutcomeResolverStorageConfig — Postgres connection settings of the outcome worker.
    """

    dsn_env: str
    connect_timeout_s: int

    def __post_init__(self) -> None:
        if not self.dsn_env.strip():
            raise ValueError("outcome_resolver.storage.dsn_env must be non-empty")
        if self.connect_timeout_s <= 0:
            raise ValueError("outcome_resolver.storage.connect_timeout_s must be > 0")


@dataclass(frozen=True, slots=True)
class OutcomeResolverCandleSourceConfig:
    """
    OutcomeResolverCandleSourceConfig — Binance REST klines client settings.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/market_data/adapters/outbound/clients/binance/
        kline_candle_fetcher.py
      - src/tradelab/contexts/market_data/adapters/outbound/clients/common_http/http_client.py
    """

    base_url: str
    timeout_s: float
    retries: int
    backoff_base_s: float
    backoff_max_s: float
    backoff_jitter_s: float

    def __post_init__(self) -> None:
        if not self.base_url.strip():
            raise ValueError("outcome_resolver.market_data.base_url must be non-empty")
        if self.timeout_s <= 0:
            raise ValueError("outcome_resolver.market_data.timeout_s must be > 0")
        if self.retries < 0:
            raise ValueError("outcome_resolver.market_data.retries must be >= 0")
        if self.backoff_base_s <= 0 or self.backoff_max_s <= 0:
            raise ValueError("outcome_resolver.market_data.backoff base_s/max_s must be > 0")
        if self.backoff_base_s > self.backoff_max_s:
            raise ValueError("outcome_resolver.market_data.backoff.base_s must be <= max_s")
        if self.backoff_jitter_s < 0:
            raise ValueError("outcome_resolver.market_data.backoff.jitter_s must be >= 0")


@dataclass(frozen=True, slots=True)
class OutcomeResolverRuntimeConfig:
    """
    OutcomeResolverRuntimeConfig — top-level runtime config for the outcome resolver worker.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - apps/worker/outcome_resolver/main/main.py
      - apps/worker/outcome_resolver/wiring/modules/outcome_resolver.py
      - configs/dev/outcome_resolver.yaml
    """

    version: int
    poll_interval_seconds: int
    metrics_port: int
    resolution: OutcomeResolutionPolicy
    schedule: OutcomeSchedulePolicy
    storage: OutcomeResolverStorageConfig
    market_data: OutcomeResolverCandleSourceConfig
    extended: ExtendedOutcomePolicy

    def __post_init__(self) -> None:
        """
        Validate top-level runtime config invariants.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Runtime schema version is fixed to `1`.
        Raises:
            ValueError: If version, poll interval or metrics port are invalid.
        Side Effects:
            None.
        """
        if self.version != 1:
            raise ValueError(f"outcome resolver config version must be 1, got {self.version}")
        if self.poll_interval_seconds <= 0:
            raise ValueError("outcome_resolver.poll_interval_seconds must be > 0")
        if not 0 < self.metrics_port <= 65535:
            raise ValueError("outcome_resolver.metrics_port must be in [1, 65535]")


def resolve_outcome_resolver_config_path(
    *,
    environ: Mapping[str, str],
    cli_config_path: str | Path | None = None,
) -> Path:
    """
    Resolve outcome resolver config path using CLI/env/fallback precedence.

    Args:
        environ: Runtime environment mapping.
        cli_config_path: Optional explicit CLI override path.
    Returns:
        Path: Resolved path to runtime config.
    Assumptions:
        Precedence is CLI `--config` > `OUTCOME_RESOLVER_CONFIG` >
        `configs/<env>/outcome_resolver.yaml`.
    Raises:
        ValueError: If `ROEHUB_ENV` value is invalid.
    Side Effects:
        None.
    """
    if cli_config_path is not None:
        raw_cli_path = str(cli_config_path).strip()
        if raw_cli_path:
            return Path(raw_cli_path)

    override_path = environ.get(_OUTCOME_RESOLVER_CONFIG_PATH_KEY, "").strip()
    if override_path:
        return Path(override_path)

    raw_env_name = environ.get(_ENV_NAME_KEY, "dev").strip().lower()
    if raw_env_name not in _ALLOWED_ENVS:
        raise ValueError(f"{_ENV_NAME_KEY} must be one of {_ALLOWED_ENVS}, got {raw_env_name!r}")
    return Path("configs") / raw_env_name / "outcome_resolver.yaml"


def load_outcome_resolver_runtime_config(path: str | Path) -> OutcomeResolverRuntimeConfig:
    """
    Load and validate outcome resolver runtime YAML config.

    Args:
        path: Path to `outcome_resolver.yaml`.
    Returns:
        OutcomeResolverRuntimeConfig: Parsed runtime config with defaults applied.
    Assumptions:
        YAML has top-level `version` and `outcome_resolver` mapping; every nested section
        is optional.
    Raises:
        FileNotFoundError: If config path does not exist.
        ValueError: If YAML shape/values are invalid.
    Side Effects:
        Reads one config file from disk.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"outcome resolver config not found: {config_path}")

    payload = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if not isinstance(payload, Mapping):
        raise ValueError("outcome resolver config must be mapping at top-level")

    version = _get_int(payload, "version", required=True)
    resolver_map = _get_mapping(payload, "outcome_resolver", required=True)
    window_map = _get_mapping(resolver_map, "window", required=False)
    trade_map = _get_mapping(resolver_map, "trade", required=False)
    expire_map = _get_mapping(resolver_map, "expire_after_15m", required=False)
    batch_map = _get_mapping(resolver_map, "batch", required=False)
    integrity_map = _get_mapping(resolver_map, "integrity", required=False)
    storage_map = _get_mapping(resolver_map, "storage", required=False)
    market_map = _get_mapping(resolver_map, "market_data", required=False)
    backoff_map = _get_mapping(market_map, "backoff", required=False)
    extended_map = _get_mapping(resolver_map, "extended", required=False)
    tracked_categories = _get_str_tuple_with_default(
        resolver_map,
        "tracked_categories",
        default=_DEFAULT_TRACKED_CATEGORIES,
    )
    max_fetch_limit = _get_int_with_default(market_map, "max_fetch_limit", default=1000)
    pacing_ms = _get_int_with_default(batch_map, "pacing_ms", default=120)

    return OutcomeResolverRuntimeConfig(
        version=version,
        poll_interval_seconds=_get_int_with_default(
            resolver_map,
            "poll_interval_seconds",
            default=60,
        ),
        metrics_port=_get_int_with_default(resolver_map, "metrics_port", default=9210),
        resolution=OutcomeResolutionPolicy(
            interval_min=_get_int_with_default(window_map, "interval_min", default=5),
            grace_ms=_get_int_with_default(window_map, "grace_seconds", default=120) * 1000,
            buffer_candles=_get_int_with_default(window_map, "buffer_candles", default=2),
            min_coverage_pct=_get_float_with_default(
                window_map,
                "min_coverage_pct",
                default=95.0,
            ),
            min_risk_pct=_get_float_with_default(trade_map, "min_risk_pct", default=0.2),
            fee_bps=_get_float_with_default(trade_map, "fee_bps", default=5.0),
            slippage_bps=_get_float_with_default(trade_map, "slippage_bps", default=2.0),
            entry_rule=_get_str_with_default(trade_map, "entry_rule", default="signal_close"),
            resolve_version=_get_str_with_default(resolver_map, "resolve_version", default="v2"),
            expire_after_15m=_get_bool_with_default(expire_map, "enabled", default=True),
            entry_drift_atr=_get_float_with_default(expire_map, "entry_drift_atr", default=1.0),
            structure_tolerance_pct=_get_float_with_default(
                expire_map,
                "structure_tolerance_pct",
                default=0.0,
            ),
            max_fetch_limit=max_fetch_limit,
        ),
        schedule=OutcomeSchedulePolicy(
            horizons_min=_get_int_tuple_with_default(
                resolver_map,
                "horizons_min",
                default=_DEFAULT_HORIZONS_MIN,
            ),
            tracked_categories=tracked_categories,
            retry_reasons=_get_str_tuple_with_default(
                batch_map,
                "retry_reasons",
                default=_DEFAULT_RETRY_REASONS,
            ),
            retry_after_ms=_get_int_with_default(batch_map, "retry_after_seconds", default=600)
            * 1000,
            batch_size=_get_int_with_default(batch_map, "batch_size", default=25),
            pacing_ms=pacing_ms,
            integrity_interval_ms=_get_int_with_default(
                integrity_map,
                "interval_seconds",
                default=600,
            )
            * 1000,
            integrity_lookback_days=_get_int_with_default(
                integrity_map,
                "lookback_days",
                default=14,
            ),
        ),
        storage=OutcomeResolverStorageConfig(
            dsn_env=_get_str_with_default(storage_map, "dsn_env", default="OUTCOMES_PG_DSN"),
            connect_timeout_s=_get_int_with_default(storage_map, "connect_timeout_s", default=10),
        ),
        market_data=OutcomeResolverCandleSourceConfig(
            base_url=_get_str_with_default(
                market_map,
                "base_url",
                default="https://api.binance.com",
            ),
            timeout_s=_get_float_with_default(market_map, "timeout_s", default=10.0),
            retries=_get_int_with_default(market_map, "retries", default=3),
            backoff_base_s=_get_float_with_default(backoff_map, "base_s", default=0.5),
            backoff_max_s=_get_float_with_default(backoff_map, "max_s", default=8.0),
            backoff_jitter_s=_get_float_with_default(backoff_map, "jitter_s", default=0.2),
        ),
        extended=ExtendedOutcomePolicy(
            enabled=_get_bool_with_default(extended_map, "enabled", default=True),
            window_hours=_get_int_with_default(extended_map, "window_hours", default=24),
            interval_min=_get_int_with_default(extended_map, "interval_min", default=5),
            batch_size=_get_int_with_default(extended_map, "batch_size", default=25),
            enroll_lookback_days=_get_int_with_default(
                extended_map,
                "enroll_lookback_days",
                default=3,
            ),
            risk_per_trade_usd=_get_float_with_default(
                extended_map,
                "risk_per_trade_usd",
                default=15.0,
            ),
            resolve_version=_get_str_with_default(
                extended_map,
                "resolve_version",
                default="v1.0.0",
            ),
            tracked_categories=tracked_categories,
            pacing_ms=pacing_ms,
            max_fetch_limit=max_fetch_limit,
        ),
    )


def _get_mapping(data: Mapping[str, Any], key: str, *, required: bool) -> Mapping[str, Any]:
    """
    Read nested mapping value from config payload.

    Args:
        data: Source mapping.
        key: Mapping key name.
        required: Whether key is required.
    Returns:
        Mapping[str, Any]: Nested mapping or empty mapping for optional missing key.
    Assumptions:
        Optional missing sections are represented as empty mapping.
    Raises:
        ValueError: If required key is missing or value is not mapping.
    Side Effects:
        None.
    """
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"missing required key: {key}")
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"expected mapping at key '{key}', got {type(value).__name__}")
    return value


def _get_int(data: Mapping[str, Any], key: str, *, required: bool) -> int:
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"missing required key: {key}")
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected int at key '{key}', got {type(value).__name__}")
    return value


def _get_int_with_default(data: Mapping[str, Any], key: str, *, default: int) -> int:
    if key not in data:
        return default
    return _get_int(data, key, required=True)


def _get_float_with_default(data: Mapping[str, Any], key: str, *, default: float) -> float:
    """
    Read optional float config value with explicit default.

    Args:
        data: Source mapping.
        key: Float key name.
        default: Value used when key is absent.
    Returns:
        float: Parsed float value.
    Assumptions:
        Integer values are accepted and converted to float.
    Raises:
        ValueError: If present value is not numeric.
    Side Effects:
        None.
    """
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected float at key '{key}', got {type(value).__name__}")
    return float(value)


def _get_str_with_default(data: Mapping[str, Any], key: str, *, default: str) -> str:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"expected string at key '{key}', got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"key '{key}' must be non-empty")
    return normalized


def _get_bool_with_default(data: Mapping[str, Any], key: str, *, default: bool) -> bool:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"expected bool at key '{key}', got {type(value).__name__}")
    return value


def _get_int_tuple_with_default(
    data: Mapping[str, Any],
    key: str,
    *,
    default: tuple[int, ...],
) -> tuple[int, ...]:
    """
    Read optional non-empty list of integers with explicit default.

    Args:
        data: Source mapping.
        key: List key name.
        default: Value used when key is absent.
    Returns:
        tuple[int, ...]: Parsed integers in YAML order.
    Assumptions:
        Bool items are rejected.
    Raises:
        ValueError: If value is not a non-empty list of integers.
    Side Effects:
        None.
    """
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, list) or not value:
        raise ValueError(f"expected non-empty list at key '{key}'")
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int):
            raise ValueError(f"expected int items at key '{key}', got {type(item).__name__}")
    return tuple(value)


def _get_str_tuple_with_default(
    data: Mapping[str, Any],
    key: str,
    *,
    default: tuple[str, ...],
) -> tuple[str, ...]:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, list):
        raise ValueError(f"expected list at key '{key}', got {type(value).__name__}")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ValueError(f"expected non-empty string items at key '{key}'")
        items.append(item.strip())
    return tuple(items)


__all__ = [
    "OutcomeResolverCandleSourceConfig",
    "OutcomeResolverRuntimeConfig",
    "OutcomeResolverStorageConfig",
    "load_outcome_resolver_runtime_config",
    "resolve_outcome_resolver_config_path",
]
