"""Config module exports."""

from testharbor.config.loader import load_config
from testharbor.config.models import (
    HarborConfig,
    LoggingConfig,
    MockDataConfig,
    PathsConfig,
    ReadinessConfig,
    SandboxConfig,
)

__all__ = [
    "load_config",
    "HarborConfig",
    "LoggingConfig",
    "MockDataConfig",
    "PathsConfig",
    "ReadinessConfig",
    "SandboxConfig",
]
