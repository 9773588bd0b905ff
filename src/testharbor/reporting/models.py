"""Report data structures."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class SuiteResult:
    """Normalised pass/fail/duration counts for one suite run."""

    suite: str
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration_seconds: float = 0.0
    source: str | None = None  # File or format it was read from

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.skipped


def success_rate(passed: int, failed: int) -> float:
    """Percentage of executed tests that passed. 0 when nothing ran."""
    executed = passed + failed
    return round(passed / executed * 100.0, 2) if executed else 0.0


@dataclass
class RunSummary:
    """Aggregate over every suite of a run."""

    total_passed: int = 0
    total_failed: int = 0
    total_skipped: int = 0
    duration_seconds: float = 0.0
    per_suite: list[SuiteResult] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def total(self) -> int:
        return self.total_passed + self.total_failed + self.total_skipped

    @property
    def success_rate(self) -> float:
        return success_rate(self.total_passed, self.total_failed)

    @property
    def ok(self) -> bool:
        return self.total_failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_tests": self.total,
            "total_passed": self.total_passed,
            "total_failed": self.total_failed,
            "total_skipped": self.total_skipped,
            "success_rate": self.success_rate,
            "duration_seconds": round(self.duration_seconds, 3),
            "generated_at": self.generated_at.isoformat(),
            "per_suite": [asdict(s) for s in self.per_suite],
        }

    def write(self, path: Path, *, trend: Trend | None = None) -> Path:
        """Write the JSON summary record, with the trend when one is given."""
        record = self.to_dict()
        if trend is not None:
            record["trend"] = trend.to_dict()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(record, indent=2) + "\n", encoding="utf-8")
        return path


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


@dataclass(frozen=True, slots=True)
class Trend:
    """Change in success rate relative to the previous run."""

    direction: TrendDirection
    delta: float  # percentage points

    def to_dict(self) -> dict[str, Any]:
        return {"direction": self.direction.value, "delta": self.delta}
