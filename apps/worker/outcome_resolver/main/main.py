from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal

from apps.worker.outcome_resolver.wiring.modules import build_outcome_resolver_app
from tradelab.contexts.outcomes.adapters.outbound import resolve_outcome_resolver_config_path


def _configure_logging() -> None:
    """
    Configure process-wide logging defaults for outcome resolver worker.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Logging is configured once at process start.
    Raises:
        None.
    Side Effects:
        Sets root logging handlers and format.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="outcome-resolver")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to outcome resolver runtime config (outcome_resolver.yaml)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Prometheus metrics HTTP port (CLI override has highest priority)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Apply resolve-version gate, run one batch pass and exit",
    )
    return parser


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    """
    Install SIGTERM/SIGINT handlers that trigger cooperative shutdown.

    Args:
        stop_event: Shared shutdown event.
    Returns:
        None.
    Assumptions:
        Function runs inside active asyncio event loop.
    Raises:
        None.
    Side Effects:
        Registers process signal handlers.
    """
    loop = asyncio.get_running_loop()

    def _mark_stop() -> None:
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _mark_stop)
        except NotImplementedError:
            signal.signal(sig, lambda *_args: _mark_stop())


async def _run_async(config_path: str | None, metrics_port: int | None, once: bool) -> int:
    """
    Build and run outcome resolver worker until stop signal (or for one pass).

    Args:
        config_path: Optional CLI runtime config path override.
        metrics_port: Optional CLI Prometheus endpoint port override.
        once: Run one pass and exit instead of looping.
    Returns:
        int: Process exit code; `1` when the single pass failed.
    Assumptions:
        Postgres DSN is provided in environment variables.
    Raises:
        Exception: Propagates wiring/runtime errors to caller.
    Side Effects:
        Starts worker runtime loop and metrics endpoint.
    """
    if metrics_port is not None and metrics_port <= 0:
        raise ValueError("--metrics-port must be > 0 when provided")

    resolved_config_path = resolve_outcome_resolver_config_path(
        environ=os.environ,
        cli_config_path=config_path,
    )
    app = build_outcome_resolver_app(
        config_path=str(resolved_config_path),
        environ=os.environ,
        metrics_port=metrics_port,
    )
    if once:
        report = await app.run_once()
        return 0 if report is not None else 1

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)
    await app.run(stop_event)
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Entrypoint for outcome resolver worker process.

    Args:
        argv: Optional command-line arguments without program name.
    Returns:
        int: Process exit code.
    Assumptions:
        Function is executed in standalone process context.
    Raises:
        None.
    Side Effects:
        Initializes logging and runs asyncio loop.
    """
    _configure_logging()
    args = _build_parser().parse_args(argv)
    try:
        return asyncio.run(
            _run_async(
                config_path=args.config,
                metrics_port=args.metrics_port,
                once=args.once,
            )
        )
    except Exception:  # noqa: BLE001
        logging.getLogger(__name__).exception("outcome-resolver failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
