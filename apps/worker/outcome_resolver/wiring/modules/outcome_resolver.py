from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

from tradelab.contexts.market_data.adapters.outbound.clients import (
    BinanceKlineCandleFetcher,
    RequestsHttpClient,
)
from tradelab.contexts.outcomes.adapters.outbound import (
    PostgresExtendedOutcomeRepository,
    PostgresOutcomeRepository,
    PsycopgOutcomesPostgresGateway,
    SystemOutcomeClock,
    SystemOutcomeSleeper,
    load_outcome_resolver_runtime_config,
)
from tradelab.contexts.outcomes.application import (
    ExtendedOutcomeTracker,
    ExtendedTrackerReport,
    HorizonOutcomeResolver,
    OutcomeBatchReport,
    OutcomeBatchScheduler,
    OutcomeIntegrityChecker,
    ResolveVersionGate,
    ResolveVersionGateReport,
)

log = logging.getLogger(__name__)


class OutcomeResolverMetrics:
    """
    OutcomeResolverMetrics — Prometheus metrics bundle for the outcome resolver worker.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - apps/worker/outcome_resolver/wiring/modules/outcome_resolver.py
      - apps/worker/outcome_resolver/main/main.py
    """

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        """
        Register Prometheus metrics used by outcome resolver runtime.

        Args:
            registry: Optional registry for tests; default process registry otherwise.
        Returns:
            None.
        Assumptions:
            Metrics are created once per worker process and registry.
        Raises:
            ValueError: Propagated by prometheus client on duplicate metric names.
        Side Effects:
            Registers metrics in target registry.
        """
        self.registry = registry or REGISTRY
        self.passes_total = Counter(
            "outcome_resolver_passes_total",
            "Outcome resolver completed batch passes count",
            registry=self.registry,
        )
        self.pass_errors_total = Counter(
            "outcome_resolver_pass_errors_total",
            "Outcome resolver batch pass failures count",
            registry=self.registry,
        )
        self.skipped_passes_total = Counter(
            "outcome_resolver_skipped_passes_total",
            "Outcome resolver passes skipped because previous pass was running",
            registry=self.registry,
        )
        self.resolved_pairs_total = Counter(
            "outcome_resolver_resolved_pairs_total",
            "Outcome resolver processed (signal, horizon) pairs count",
            registry=self.registry,
        )
        self.failed_pairs_total = Counter(
            "outcome_resolver_failed_pairs_total",
            "Outcome resolver pairs failed with unexpected errors count",
            registry=self.registry,
        )
        self.fetch_errors_total = Counter(
            "outcome_resolver_fetch_errors_total",
            "Outcome resolver candle fetch failures count",
            registry=self.registry,
        )
        self.integrity_failures_total = Counter(
            "outcome_resolver_integrity_failures_total",
            "Outcome resolver integrity sweeps reporting violations count",
            registry=self.registry,
        )
        self.gate_reset_rows_total = Counter(
            "outcome_resolver_gate_reset_rows_total",
            "Outcome rows reset by resolve-version gate count",
            registry=self.registry,
        )
        self.extended_enrolled_total = Counter(
            "outcome_resolver_extended_enrolled_total",
            "Signals enrolled into 24-hour extended tracking count",
            registry=self.registry,
        )
        self.extended_evaluated_total = Counter(
            "outcome_resolver_extended_evaluated_total",
            "Extended outcome rows evaluated count",
            registry=self.registry,
        )
        self.extended_completed_total = Counter(
            "outcome_resolver_extended_completed_total",
            "Extended outcome rows completed count",
            registry=self.registry,
        )
        self.extended_errors_total = Counter(
            "outcome_resolver_extended_errors_total",
            "Extended outcome row failures and candle fetch failures count",
            registry=self.registry,
        )
        self.extended_pass_errors_total = Counter(
            "outcome_resolver_extended_pass_errors_total",
            "Extended tracking pass failures count",
            registry=self.registry,
        )
        self.pass_duration_seconds = Histogram(
            "outcome_resolver_pass_duration_seconds",
            "Outcome resolver batch pass duration in seconds",
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0),
            registry=self.registry,
        )

    def observe_pass(self, *, report: OutcomeBatchReport, duration_seconds: float) -> None:
        if report.skipped:
            self.skipped_passes_total.inc()
            return
        self.passes_total.inc()
        self.resolved_pairs_total.inc(report.processed)
        self.failed_pairs_total.inc(report.failed)
        self.fetch_errors_total.inc(report.fetch_errors)
        if report.integrity is not None and not report.integrity.ok:
            self.integrity_failures_total.inc()
        self.pass_duration_seconds.observe(max(duration_seconds, 0.0))

    def observe_gate(self, *, report: ResolveVersionGateReport) -> None:
        self.gate_reset_rows_total.inc(report.reset_rows)

    def observe_extended(self, *, report: ExtendedTrackerReport) -> None:
        self.extended_enrolled_total.inc(report.enrolled)
        self.extended_evaluated_total.inc(report.evaluated)
        self.extended_completed_total.inc(report.completed)
        self.extended_errors_total.inc(report.failed + report.fetch_errors)


@dataclass(frozen=True, slots=True)
class OutcomeResolverApp:
    """
    OutcomeResolverApp — runtime loop wrapper over horizon scheduler and extended tracker.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
      - src/tradelab/contexts/outcomes/application/services/extended_tracker.py
      - apps/worker/outcome_resolver/main/main.py
      - configs/dev/outcome_resolver.yaml
    """

    poll_interval_seconds: int
    gate: ResolveVersionGate
    scheduler: OutcomeBatchScheduler
    metrics: OutcomeResolverMetrics
    metrics_port: int
    extended_tracker: ExtendedOutcomeTracker | None = None

    def __post_init__(self) -> None:
        if self.poll_interval_seconds <= 0:
            raise ValueError("OutcomeResolverApp.poll_interval_seconds must be > 0")
        if self.metrics_port <= 0:
            raise ValueError("OutcomeResolverApp.metrics_port must be > 0")

    def apply_gate(self) -> ResolveVersionGateReport:
        report = self.gate.apply()
        self.metrics.observe_gate(report=report)
        return report

    async def run_pass(self) -> OutcomeBatchReport | None:
        """
        Run one scheduler pass in worker thread and record metrics.

        Args:
            None.
        Returns:
            OutcomeBatchReport | None: Pass report or `None` when pass failed.
        Assumptions:
            Blocking IO and pacing sleeps stay off the event loop thread.
        Raises:
            None.
        Side Effects:
            Performs storage/network IO and updates Prometheus metrics.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            report = await asyncio.to_thread(self.scheduler.run_once)
        except Exception:  # noqa: BLE001
            self.metrics.pass_errors_total.inc()
            log.exception("outcome resolver pass failed")
            return None
        self.metrics.observe_pass(report=report, duration_seconds=loop.time() - started)
        log.info(
            "outcome resolver pass finished processed=%s failed=%s fetch_errors=%s "
            "provider_calls=%s cache_hits=%s skipped=%s",
            report.processed,
            report.failed,
            report.fetch_errors,
            report.provider_calls,
            report.cache_hits,
            report.skipped,
        )
        return report

    async def run_extended_pass(self) -> ExtendedTrackerReport | None:
        """
        Run one extended tracking pass in worker thread when tracker is configured.

        Args:
            None.
        Returns:
            ExtendedTrackerReport | None: Pass report, or `None` when disabled or failed.
        Assumptions:
            Extended failures never affect horizon resolution passes.
        Raises:
            None.
        Side Effects:
            Performs storage/network IO and updates Prometheus metrics.
        """
        if self.extended_tracker is None:
            return None
        try:
            report = await asyncio.to_thread(self.extended_tracker.run_once)
        except Exception:  # noqa: BLE001
            self.metrics.extended_pass_errors_total.inc()
            log.exception("extended outcome pass failed")
            return None
        self.metrics.observe_extended(report=report)
        log.info(
            "extended outcome pass finished enrolled=%s evaluated=%s completed=%s "
            "failed=%s fetch_errors=%s",
            report.enrolled,
            report.evaluated,
            report.completed,
            report.failed,
            report.fetch_errors,
        )
        return report

    async def run_once(self) -> OutcomeBatchReport | None:
        """Apply resolve-version gate and run exactly one pass of both trackers."""
        await asyncio.to_thread(self.apply_gate)
        report = await self.run_pass()
        await self.run_extended_pass()
        return report

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Apply resolve-version gate, then run passes until stop event is set.

        Args:
            stop_event: Cooperative shutdown signal shared with process entrypoint.
        Returns:
            None.
        Assumptions:
            Gate failure aborts startup; pass failures are logged and loop continues.
        Raises:
            OutcomeStorageError: If resolve-version gate cannot be applied.
        Side Effects:
            Starts Prometheus HTTP endpoint and performs storage/network IO each pass.
        """
        start_http_server(self.metrics_port, registry=self.metrics.registry)
        log.info("outcome resolver metrics server started on port %s", self.metrics_port)
        await asyncio.to_thread(self.apply_gate)
        while not stop_event.is_set():
            await self.run_pass()
            await self.run_extended_pass()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval_seconds)
            except TimeoutError:
                continue


def build_outcome_resolver_app(
    *,
    config_path: str,
    environ: Mapping[str, str],
    metrics_port: int | None = None,
    metrics_registry: CollectorRegistry | None = None,
) -> OutcomeResolverApp:
    """
    Build fully wired outcome resolver worker app.

    Args:
        config_path: Path to `outcome_resolver.yaml`.
        environ: Runtime environment mapping.
        metrics_port: Optional Prometheus port override; config value is used when `None`.
        metrics_registry: Optional Prometheus registry; default process registry when `None`.
    Returns:
        OutcomeResolverApp: Ready-to-run app instance.
    Assumptions:
        Postgres DSN is provided via environment variable named by `storage.dsn_env`.
    Raises:
        ValueError: If required runtime configuration/env variables are missing.
    Side Effects:
        Creates storage gateway and HTTP client.
    """
    runtime_config = load_outcome_resolver_runtime_config(Path(config_path))

    dsn_env = runtime_config.storage.dsn_env
    outcomes_pg_dsn = environ.get(dsn_env, "").strip()
    if not outcomes_pg_dsn:
        raise ValueError(f"{dsn_env} is required for outcome resolver worker")

    gateway = PsycopgOutcomesPostgresGateway(
        dsn=outcomes_pg_dsn,
        connect_timeout_s=runtime_config.storage.connect_timeout_s,
    )
    outcome_repository = PostgresOutcomeRepository(gateway=gateway)
    clock = SystemOutcomeClock()
    resolution = runtime_config.resolution
    schedule = runtime_config.schedule

    market = runtime_config.market_data
    candle_fetcher = BinanceKlineCandleFetcher(
        http=RequestsHttpClient(),
        base_url=market.base_url,
        timeout_s=market.timeout_s,
        retries=market.retries,
        backoff_base_s=market.backoff_base_s,
        backoff_max_s=market.backoff_max_s,
        backoff_jitter_s=market.backoff_jitter_s,
    )

    scheduler = OutcomeBatchScheduler(
        outcome_repository=outcome_repository,
        resolver=HorizonOutcomeResolver(
            outcome_repository=outcome_repository,
            policy=resolution,
            clock=clock,
        ),
        candle_fetcher=candle_fetcher,
        resolution_policy=resolution,
        schedule_policy=schedule,
        integrity_checker=OutcomeIntegrityChecker(
            outcome_repository=outcome_repository,
            resolve_version=resolution.resolve_version,
            lookback_days=schedule.integrity_lookback_days,
        ),
        clock=clock,
        sleeper=SystemOutcomeSleeper(),
    )
    extended = runtime_config.extended
    extended_tracker = None
    if extended.enabled:
        extended_tracker = ExtendedOutcomeTracker(
            repository=PostgresExtendedOutcomeRepository(gateway=gateway),
            candle_fetcher=candle_fetcher,
            policy=extended,
            clock=clock,
            sleeper=SystemOutcomeSleeper(),
        )
    return OutcomeResolverApp(
        poll_interval_seconds=runtime_config.poll_interval_seconds,
        gate=ResolveVersionGate(
            outcome_repository=outcome_repository,
            resolve_version=resolution.resolve_version,
            clock=clock,
        ),
        scheduler=scheduler,
        metrics=OutcomeResolverMetrics(registry=metrics_registry),
        metrics_port=metrics_port if metrics_port is not None else runtime_config.metrics_port,
        extended_tracker=extended_tracker,
    )
