from __future__ import annotations

import logging

import pytest

from tradelab.contexts.outcomes.application import OutcomeIntegrityChecker
from tradelab.contexts.outcomes.domain.entities import OutcomeIntegrityReport

_DAY_MS = 86_400_000


class _ReportingRepository:
    def __init__(self, report: OutcomeIntegrityReport) -> None:
        self._report = report
        self.calls: list[tuple[str, int]] = []

    def count_integrity_violations(
        self,
        *,
        resolve_version: str,
        resolved_since_ms: int,
    ) -> OutcomeIntegrityReport:
        self.calls.append((resolve_version, resolved_since_ms))
        return self._report


def test_check_scopes_query_to_lookback_window() -> None:
    repository = _ReportingRepository(OutcomeIntegrityReport())
    checker = OutcomeIntegrityChecker(
        outcome_repository=repository,  # type: ignore[arg-type]
        resolve_version=" v2 ",
        lookback_days=7,
    )

    report = checker.check(now_ms=30 * _DAY_MS)

    assert report.ok is True
    assert repository.calls == [("v2", 23 * _DAY_MS)]


def test_check_clamps_lookback_start_at_epoch() -> None:
    repository = _ReportingRepository(OutcomeIntegrityReport())
    checker = OutcomeIntegrityChecker(
        outcome_repository=repository,  # type: ignore[arg-type]
        resolve_version="v2",
        lookback_days=7,
    )

    checker.check(now_ms=_DAY_MS)

    assert repository.calls == [("v2", 0)]


def test_check_logs_warning_for_violations_without_raising(
    caplog: pytest.LogCaptureFixture,
) -> None:
    repository = _ReportingRepository(
        OutcomeIntegrityReport(missing_exit_reason=2, bad_timeout_rows=1)
    )
    checker = OutcomeIntegrityChecker(
        outcome_repository=repository,  # type: ignore[arg-type]
        resolve_version="v2",
        lookback_days=7,
    )

    with caplog.at_level(logging.WARNING):
        report = checker.check(now_ms=30 * _DAY_MS)

    assert report.ok is False
    assert "outcome integrity violations" in caplog.text
    assert "missing_exit_reason" in caplog.text


def test_clean_report_logs_nothing(caplog: pytest.LogCaptureFixture) -> None:
    checker = OutcomeIntegrityChecker(
        outcome_repository=_ReportingRepository(OutcomeIntegrityReport()),  # type: ignore[arg-type]
        resolve_version="v2",
        lookback_days=7,
    )

    with caplog.at_level(logging.WARNING):
        checker.check(now_ms=30 * _DAY_MS)

    assert caplog.records == []


def test_checker_rejects_invalid_configuration() -> None:
    repository = _ReportingRepository(OutcomeIntegrityReport())
    with pytest.raises(ValueError, match="lookback_days"):
        OutcomeIntegrityChecker(
            outcome_repository=repository,  # type: ignore[arg-type]
            resolve_version="v2",
            lookback_days=0,
        )
    with pytest.raises(ValueError, match="resolve_version"):
        OutcomeIntegrityChecker(
            outcome_repository=repository,  # type: ignore[arg-type]
            resolve_version="  ",
            lookback_days=7,
        )
