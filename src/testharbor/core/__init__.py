"""Core module exports."""

from testharbor.core.errors import (
    CleanupFailure,
    ConfigError,
    ErrorCode,
    HarborError,
    InternalError,
    MockDataError,
    ProvisioningFailure,
    SafetyViolation,
)
from testharbor.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from testharbor.core.progress import spinner, status, task

__all__ = [
    # Errors
    "CleanupFailure",
    "ConfigError",
    "ErrorCode",
    "HarborError",
    "InternalError",
    "MockDataError",
    "ProvisioningFailure",
    "SafetyViolation",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Progress
    "spinner",
    "status",
    "task",
]
