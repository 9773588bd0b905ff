"""Suite result parsers.

Normalises the result formats produced by the suites into SuiteResult:
summary JSON (PascalCase keys as written by the Windows runners, or
lower-case keys), one-line text summaries, JUnit XML and NUnit XML.

Every parser raises ValueError on input it cannot read.
"""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

from testharbor.reporting.models import SuiteResult

__all__ = [
    "parse_mapping",
    "parse_text",
    "parse_junit_xml",
    "parse_nunit_xml",
    "parse_xml",
    "parse_content",
    "parse_file",
    "auto_parse",
]

_TEXT_SUMMARY = re.compile(
    r"Tests\s+Passed:\s*(?P<passed>\d+)\s*,\s*Failed:\s*(?P<failed>\d+)\s*,\s*Skipped:\s*(?P<skipped>\d+)",
    re.IGNORECASE,
)
_TEXT_DURATION = re.compile(r"Duration:\s*(?P<duration>[\d.:]+)\s*s?", re.IGNORECASE)

# Pester/PowerShell writes summaries with these keys
_PASCAL_KEYS = {
    "suite": "TestSuite",
    "passed": "PassedTests",
    "failed": "FailedTests",
    "skipped": "SkippedTests",
    "duration": "Duration",
}
_PLAIN_KEYS = {
    "suite": "suite",
    "passed": "passed",
    "failed": "failed",
    "skipped": "skipped",
    "duration": "duration",
}

_NUNIT_PASSED = {"passed", "success"}
_NUNIT_FAILED = {"failed", "failure", "error"}
_NUNIT_SKIPPED = {"skipped", "ignored", "inconclusive", "notrunnable"}


def parse_duration(value: Any) -> float:
    """Seconds from a number, an ``hh:mm:ss(.fff)`` string or a TimeSpan mapping."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, Mapping):
        if "TotalSeconds" in value:
            return float(value["TotalSeconds"])
        if "TotalMilliseconds" in value:
            return float(value["TotalMilliseconds"]) / 1000.0
        raise ValueError(f"Unrecognised duration object: {sorted(value)}")
    text = str(value).strip().rstrip("s")
    if ":" in text:
        seconds = 0.0
        for part in text.split(":"):
            seconds = seconds * 60 + float(part)
        return seconds
    return float(text)


def _count(data: Mapping[str, Any], key: str) -> int:
    raw = data.get(key, 0)
    if raw is None:
        return 0
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise ValueError(f"Invalid count for {key}: {raw!r}")
    count = int(raw)
    if count < 0:
        raise ValueError(f"Negative count for {key}: {count}")
    return count


def parse_mapping(
    data: Mapping[str, Any], suite: str | None = None, *, source: str | None = None
) -> SuiteResult:
    """Parse a summary record (PascalCase or lower-case keys)."""
    if not isinstance(data, Mapping):
        raise ValueError(f"Summary must be an object, got {type(data).__name__}")

    if any(key in data for key in ("PassedTests", "FailedTests", "TotalTests")):
        keys = _PASCAL_KEYS
    elif any(key in data for key in ("passed", "failed")):
        keys = _PLAIN_KEYS
    else:
        raise ValueError(f"Summary has no pass/fail counts (keys: {sorted(data)})")

    try:
        return SuiteResult(
            suite=suite or str(data.get(keys["suite"]) or "unnamed"),
            passed=_count(data, keys["passed"]),
            failed=_count(data, keys["failed"]),
            skipped=_count(data, keys["skipped"]),
            duration_seconds=parse_duration(data.get(keys["duration"])),
            source=source or "summary-json",
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid summary record: {e}") from e


def parse_text(content: str, suite: str | None = None, *, source: str | None = None) -> SuiteResult:
    """Parse ``Tests Passed: N, Failed: N, Skipped: N`` (optional ``Duration: S``)."""
    match = _TEXT_SUMMARY.search(content)
    if match is None:
        raise ValueError("No 'Tests Passed: N, Failed: N, Skipped: N' line found")
    duration = _TEXT_DURATION.search(content)
    return SuiteResult(
        suite=suite or "unnamed",
        passed=int(match["passed"]),
        failed=int(match["failed"]),
        skipped=int(match["skipped"]),
        duration_seconds=parse_duration(duration["duration"]) if duration else 0.0,
        source=source or "text",
    )


def parse_junit_xml(content: str, suite: str | None = None, *, source: str | None = None) -> SuiteResult:
    """Parse JUnit XML. Errors count as failures."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise ValueError(f"Invalid XML: {e}") from e
    return _junit_from_root(root, suite, source)


def _junit_from_root(root: ET.Element, suite: str | None, source: str | None) -> SuiteResult:
    suites = list(root.iter("testsuite")) if root.tag == "testsuites" else [root]
    if root.tag not in ("testsuites", "testsuite"):
        raise ValueError(f"Not a JUnit document (root element <{root.tag}>)")

    passed = failed = skipped = 0
    total_duration = 0.0
    for testcase in root.iter("testcase"):
        total_duration += float(testcase.get("time") or 0)
        if testcase.find("failure") is not None or testcase.find("error") is not None:
            failed += 1
        elif testcase.find("skipped") is not None:
            skipped += 1
        else:
            passed += 1

    # Prefer the runner's wall time when it reports one
    suite_time = root.get("time")
    if suite_time:
        total_duration = float(suite_time)

    name = suite or root.get("name") or (suites[0].get("name") if suites else None) or "testsuite"
    return SuiteResult(
        suite=name,
        passed=passed,
        failed=failed,
        skipped=skipped,
        duration_seconds=total_duration,
        source=source or "junit-xml",
    )


def parse_nunit_xml(content: str, suite: str | None = None, *, source: str | None = None) -> SuiteResult:
    """Parse NUnit 2 (``<test-results>``) or NUnit 3 (``<test-run>``) XML."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise ValueError(f"Invalid XML: {e}") from e
    return _nunit_from_root(root, suite, source)


def _nunit_from_root(root: ET.Element, suite: str | None, source: str | None) -> SuiteResult:
    if root.tag not in ("test-run", "test-results"):
        raise ValueError(f"Not an NUnit document (root element <{root.tag}>)")

    passed = failed = skipped = 0
    for case in root.iter("test-case"):
        outcome = (case.get("result") or "").lower()
        if outcome in _NUNIT_PASSED:
            passed += 1
        elif outcome in _NUNIT_FAILED:
            failed += 1
        elif outcome in _NUNIT_SKIPPED or case.get("executed", "").lower() == "false":
            skipped += 1

    duration = root.get("duration") or root.get("time")
    if duration is None:
        first_suite = root.find("test-suite")
        duration = first_suite.get("time") if first_suite is not None else None

    return SuiteResult(
        suite=suite or root.get("name") or "testsuite",
        passed=passed,
        failed=failed,
        skipped=skipped,
        duration_seconds=parse_duration(duration),
        source=source or "nunit-xml",
    )


def parse_xml(content: str, suite: str | None = None, *, source: str | None = None) -> SuiteResult:
    """Dispatch on the root element to the JUnit or NUnit parser."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise ValueError(f"Invalid XML: {e}") from e
    if root.tag in ("test-run", "test-results"):
        return _nunit_from_root(root, suite, source)
    return _junit_from_root(root, suite, source)


def parse_content(content: str, suite: str | None = None, *, source: str | None = None) -> SuiteResult:
    """Detect the format of ``content`` and parse it."""
    text = content.lstrip("\ufeff").strip()
    if not text:
        raise ValueError("Empty report")
    if text.startswith("<"):
        return parse_xml(text, suite, source=source)
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e
        return parse_mapping(data, suite, source=source)
    return parse_text(text, suite, source=source)


def parse_file(path: Path, suite: str | None = None) -> SuiteResult:
    """Read and parse a report file.

    Raises:
        ValueError: Unreadable or unrecognised content.
    """
    try:
        # utf-8-sig: PowerShell's Out-File writes a BOM
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ValueError(f"Cannot read {path}: {e}") from e
    result = parse_content(content, suite, source=str(path))
    if suite is None and result.suite == "unnamed":
        result = replace(result, suite=path.stem)
    return result


def _looks_like_path(value: str) -> bool:
    return "\n" not in value and len(value) < 4096 and not value.lstrip().startswith(("<", "{"))


def auto_parse(result: Any, suite: str | None = None) -> SuiteResult:
    """Normalise any supported input into a SuiteResult."""
    if isinstance(result, SuiteResult):
        return result
    if isinstance(result, Mapping):
        return parse_mapping(result, suite)
    if isinstance(result, Path):
        return parse_file(result, suite)
    if isinstance(result, bytes):
        result = result.decode("utf-8-sig", errors="replace")
    if isinstance(result, str):
        if _looks_like_path(result) and Path(result).is_file():
            return parse_file(Path(result), suite)
        return parse_content(result, suite)
    raise ValueError(f"Unsupported result type: {type(result).__name__}")
