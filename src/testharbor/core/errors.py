"""TestHarbor error types with typed error codes.

Error code ranges:
- 1xxx: Safety (fatal, never suppressed)
- 2xxx: Config
- 3xxx: Provisioning (fatal for the suite)
- 4xxx: Cleanup (non-fatal, surfaced)
- 5xxx: Mock data
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Safety (1xxx)
    DANGEROUS_ROOT_WRITE = 1001
    UNRECOGNIZED_PATH = 1002
    MISSING_EXPECTED_DIRECTORY = 1003
    STALE_OR_INVALID_LOCK = 1004

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_MISSING_REQUIRED = 2003
    CONFIG_FILE_NOT_FOUND = 2004

    # Provisioning (3xxx)
    PROVISIONING_NOT_READY = 3001

    # Cleanup (4xxx)
    CLEANUP_FAILED = 4001

    # Mock data (5xxx)
    MOCK_UNKNOWN_COMPONENT = 5001
    MOCK_DYNAMIC_UNAVAILABLE = 5002

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_TIMEOUT = 9002


# Category names reported to operators for each safety code.
_SAFETY_CATEGORIES = {
    ErrorCode.DANGEROUS_ROOT_WRITE: "DangerousRootWrite",
    ErrorCode.UNRECOGNIZED_PATH: "UnrecognizedPath",
    ErrorCode.MISSING_EXPECTED_DIRECTORY: "MissingExpectedDirectory",
    ErrorCode.STALE_OR_INVALID_LOCK: "StaleOrInvalidLock",
}


@dataclass(eq=False)
class HarborError(Exception):
    """Base error with structured context for logs and JSON output."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'DANGEROUS_ROOT_WRITE')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class SafetyViolation(HarborError):
    """A path or lock failed a safety check. Always fatal.

    Raised before any filesystem mutation is attempted. The message names the
    offending path and the reason so an operator can tell a defect apart from
    an environment that needs a different flag.
    """

    @property
    def category(self) -> str:
        return _SAFETY_CATEGORIES.get(self.code, self.error_name)

    @property
    def path(self) -> str | None:
        return self.details.get("path")

    @classmethod
    def dangerous_root_write(cls, path: str, reason: str) -> "SafetyViolation":
        return cls(
            code=ErrorCode.DANGEROUS_ROOT_WRITE,
            message=f"Refusing to write to protected location {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def unrecognized_path(cls, path: str, reason: str) -> "SafetyViolation":
        return cls(
            code=ErrorCode.UNRECOGNIZED_PATH,
            message=f"Path {path} is not a recognized safe location: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def missing_expected_directory(cls, path: str) -> "SafetyViolation":
        return cls(
            code=ErrorCode.MISSING_EXPECTED_DIRECTORY,
            message=f"Expected directory does not exist after creation: {path}",
            details={"path": path, "reason": "directory missing after creation"},
        )

    @classmethod
    def stale_or_invalid_lock(cls, path: str, reason: str) -> "SafetyViolation":
        return cls(
            code=ErrorCode.STALE_OR_INVALID_LOCK,
            message=f"Environment lock at {path} is stale or invalid: {reason}",
            details={"path": path, "reason": reason},
        )


class ConfigError(HarborError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_REQUIRED,
            message=f"Missing required config field: {field}",
            details={"field": field},
        )


class ProvisioningFailure(HarborError):
    """A readiness signal never arrived within the retry budget."""

    @classmethod
    def not_ready(cls, signal: str, attempts: int, last_error: str | None = None) -> "ProvisioningFailure":
        return cls(
            code=ErrorCode.PROVISIONING_NOT_READY,
            message=f"{signal} did not become ready after {attempts} attempts",
            retryable=True,
            details={"signal": signal, "attempts": attempts, "last_error": last_error},
        )


class CleanupFailure(HarborError):
    """A teardown step could not remove a directory. Logged, never raised."""

    @classmethod
    def could_not_remove(cls, path: str, reason: str, log_file: Path | None = None) -> "CleanupFailure":
        details: dict[str, Any] = {"path": path, "reason": reason}
        if log_file is not None:
            details["log_file"] = str(log_file)
        return cls(
            code=ErrorCode.CLEANUP_FAILED,
            message=f"Could not remove {path}: {reason}",
            details=details,
        )


class MockDataError(HarborError):
    """Mock fixture data errors."""

    @classmethod
    def unknown_component(cls, name: str, known: list[str]) -> "MockDataError":
        return cls(
            code=ErrorCode.MOCK_UNKNOWN_COMPONENT,
            message=f"Unknown mock component '{name}'",
            details={"component": name, "known": known},
        )

    @classmethod
    def dynamic_unavailable(cls, name: str, reason: str) -> "MockDataError":
        return cls(
            code=ErrorCode.MOCK_DYNAMIC_UNAVAILABLE,
            message=f"Dynamic mock data for '{name}' is unavailable: {reason}",
            details={"component": name, "reason": reason},
        )


class InternalError(HarborError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
