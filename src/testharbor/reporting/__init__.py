"""Suite result parsing and run summaries."""

from testharbor.reporting.aggregator import (
    ExecutionReportAggregator,
    append_history,
    compute_trend,
    load_history,
)
from testharbor.reporting.models import RunSummary, SuiteResult, Trend, TrendDirection
from testharbor.reporting.parsers import auto_parse

__all__ = [
    "ExecutionReportAggregator",
    "RunSummary",
    "SuiteResult",
    "Trend",
    "TrendDirection",
    "append_history",
    "auto_parse",
    "compute_trend",
    "load_history",
]
