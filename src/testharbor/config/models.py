"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (TESTHARBOR__SECTION__KEY)
3. Project YAML (.testharbor/config.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    TESTHARBOR__<SECTION>__<KEY>=<VALUE>

Examples:
    TESTHARBOR__LOGGING__LEVEL=DEBUG
    TESTHARBOR__PATHS__TEMP_ROOT=build/tmp
    TESTHARBOR__READINESS__MAX_ATTEMPTS=60

Signal variables read by the classifier (TESTHARBOR_CONTAINER, CI, ...) are
not configuration; see constants.py.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        TESTHARBOR__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class PathsConfig(BaseModel):
    """Safe-location configuration for the path validator.

    Env vars:
        TESTHARBOR__PATHS__TEMP_ROOT: Project temp root (relative to project root)
        TESTHARBOR__PATHS__USER_TEMP_DIR: Override the platform user-temp directory
    """

    temp_root: str = Field(
        default="tmp",
        description="Designated temp root. Relative values are anchored at the project root.",
    )
    container_roots: list[str] = Field(
        default_factory=lambda: ["/workspace", "/test-results", "/mnt/test-data", "/mock-data", "/tmp"],
        description="Workspace roots that are safe only inside a container.",
    )
    ci_temp_env_vars: list[str] = Field(
        default_factory=lambda: ["RUNNER_TEMP", "AGENT_TEMPDIRECTORY"],
        description="Env vars naming CI runner temp directories. Safe only on CI.",
    )
    ci_temp_roots: list[str] = Field(
        default_factory=lambda: ["/home/runner/work/_temp", "D:/a/_temp"],
        description="Static CI runner temp conventions. Safe only on CI.",
    )
    extra_protected_roots: list[str] = Field(
        default_factory=list,
        description="Additional always-dangerous prefixes.",
    )
    user_temp_dir: str | None = Field(
        default=None,
        description="Override the platform user-temp directory (tempfile.gettempdir()).",
    )

    @field_validator("container_roots", "ci_temp_roots", "extra_protected_roots")
    @classmethod
    def validate_absolute(cls, v: list[str]) -> list[str]:
        for item in v:
            if not (item.startswith(("/", "\\")) or (len(item) > 2 and item[1] == ":")):
                raise ValueError(f"Root must be absolute: {item}")
        return v


class SandboxConfig(BaseModel):
    """Per-suite sandbox configuration.

    Env vars:
        TESTHARBOR__SANDBOX__BASE_DIR: Parent directory for sandbox roots
    """

    base_dir: str | None = Field(
        default=None,
        description="Parent directory for sandbox roots. Default: the project temp root.",
    )
    keep_on_failure: bool = Field(
        default=False,
        description="Keep the sandbox when the wrapped command fails (for debugging).",
    )


class MockDataConfig(BaseModel):
    """Mock fixture data configuration.

    Env vars:
        TESTHARBOR__MOCKDATA__STATIC_ROOT: Checked-in fixture root (relative to project root)
    """

    static_root: str = Field(
        default="tests/mock-data",
        description="Checked-in fixture root. Never touched by automated resets.",
    )
    components: list[str] = Field(
        default_factory=lambda: [
            "registry",
            "appdata",
            "programfiles",
            "wsl",
            "cloud",
            "steam",
            "epic",
            "gog",
            "ea",
            "chocolatey",
            "scoop",
            "winget",
        ],
        description="Known mock components.",
    )

    @field_validator("components")
    @classmethod
    def validate_components(cls, v: list[str]) -> list[str]:
        for name in v:
            if not name or "/" in name or "\\" in name or name in (".", "..") or name == "*":
                raise ValueError(f"Invalid component name: {name!r}")
        return v


class ReadinessConfig(BaseModel):
    """Bounded readiness waits for dependent services.

    Env vars:
        TESTHARBOR__READINESS__MAX_ATTEMPTS: Attempts before ProvisioningFailure
        TESTHARBOR__READINESS__INTERVAL_SEC: Fixed sleep between attempts
    """

    max_attempts: int = Field(
        default=30,
        description="Attempts before giving up. RISK: too low fails slow container starts.",
    )
    interval_sec: float = Field(
        default=2.0,
        description="Fixed sleep between attempts.",
    )
    probe_timeout_sec: float = Field(
        default=5.0,
        description="Timeout of a single probe.",
    )

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_attempts must be >= 1, got {v}")
        return v


class HarborConfig(BaseModel):
    """Root configuration for TestHarbor."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    mockdata: MockDataConfig = Field(default_factory=MockDataConfig)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
