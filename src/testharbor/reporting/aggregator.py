"""Merge per-suite results into one run summary with a trend."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from testharbor.config.constants import TREND_TOLERANCE_PCT
from testharbor.reporting.models import RunSummary, SuiteResult, Trend, TrendDirection
from testharbor.reporting.parsers import auto_parse

log = structlog.get_logger(__name__)

HistoryEntry = RunSummary | Mapping[str, Any] | float | int


class ExecutionReportAggregator:
    """Collects suite results one at a time.

    Unreadable inputs are skipped with a warning; a broken report never
    hides the results of the other suites.
    """

    def __init__(self) -> None:
        self._results: list[SuiteResult] = []
        self.rejected: list[str] = []

    @property
    def results(self) -> list[SuiteResult]:
        return list(self._results)

    def add(self, result: Any, *, suite: str | None = None) -> SuiteResult | None:
        """Normalise ``result`` and fold it into the run.

        Accepts a SuiteResult, a summary mapping, report text (summary line,
        JSON, JUnit or NUnit XML) or a path to a report file.
        """
        try:
            parsed = auto_parse(result, suite)
        except ValueError as e:
            label = str(result) if isinstance(result, Path | str) and len(str(result)) < 200 else type(result).__name__
            log.warning("report_unparseable", source=label, error=str(e))
            self.rejected.append(label)
            return None

        self._results.append(parsed)
        log.debug(
            "report_added",
            suite=parsed.suite,
            passed=parsed.passed,
            failed=parsed.failed,
            skipped=parsed.skipped,
        )
        return parsed

    def add_all(self, results: Sequence[Any]) -> list[SuiteResult]:
        added = [self.add(r) for r in results]
        return [r for r in added if r is not None]

    def summarize(self) -> RunSummary:
        summary = RunSummary(per_suite=list(self._results))
        for r in self._results:
            summary.total_passed += r.passed
            summary.total_failed += r.failed
            summary.total_skipped += r.skipped
            summary.duration_seconds += r.duration_seconds
        return summary


def _rate(entry: HistoryEntry) -> float | None:
    """Success rate of a history entry, or None when the record is unusable."""
    try:
        if isinstance(entry, RunSummary):
            return entry.success_rate
        if isinstance(entry, Mapping):
            if "success_rate" in entry:
                return float(entry["success_rate"])
            passed = int(entry.get("total_passed", 0))
            failed = int(entry.get("total_failed", 0))
            executed = passed + failed
            return passed / executed * 100.0 if executed else 0.0
        return float(entry)
    except (TypeError, ValueError) as e:
        log.warning("history_unreadable", entry=repr(entry)[:200], error=str(e))
        return None


def compute_trend(
    history: Sequence[HistoryEntry],
    current: HistoryEntry | None = None,
    *,
    tolerance: float = TREND_TOLERANCE_PCT,
) -> Trend:
    """Compare the current success rate with the previous run's.

    Without ``current`` the last history entry is the current run. A delta
    within ``tolerance`` percentage points is stable. Entries without a
    readable rate are skipped.
    """
    entries = list(history)
    if current is not None:
        entries.append(current)
    rates = [rate for rate in map(_rate, entries) if rate is not None]
    if len(rates) < 2:
        return Trend(TrendDirection.STABLE, 0.0)

    delta = round(rates[-1] - rates[-2], 2)
    if delta > tolerance:
        direction = TrendDirection.IMPROVING
    elif delta < -tolerance:
        direction = TrendDirection.DECLINING
    else:
        direction = TrendDirection.STABLE
    return Trend(direction, delta)


def load_history(path: Path) -> list[dict[str, Any]]:
    """Previous run summaries from a JSON array file. Missing file is empty history."""
    if not path.is_file():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning("history_unreadable", path=str(path), error=str(e))
        return []
    if not isinstance(data, list):
        log.warning("history_unreadable", path=str(path), error="expected a JSON array")
        return []
    return [entry for entry in data if isinstance(entry, dict)]


def append_history(path: Path, summary: RunSummary, *, keep: int = 50) -> None:
    """Append ``summary`` to the history file, keeping the newest ``keep`` runs."""
    entries = load_history(path)
    record = summary.to_dict()
    record.pop("per_suite", None)
    entries.append(record)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(entries[-keep:], indent=2) + "\n", encoding="utf-8")
