"""Configuration constants.

Values here are part of the contract between the harness, the CI pipelines
and the test bodies. They are NOT user-configurable.

For configurable values, see models.py (PathsConfig, ReadinessConfig, etc.).
"""

# =============================================================================
# Environment Signals
# =============================================================================

CONTAINER_MARKER_FILE = "/.dockerenv"
"""Marker file present inside Docker containers."""

CONTAINER_MODE_VAR = "TESTHARBOR_CONTAINER"
"""Explicit container-mode indicator, set by the test compose file."""

CI_INDICATOR_VARS = (
    "CI",
    "GITHUB_ACTIONS",
    "TF_BUILD",
    "GITLAB_CI",
    "JENKINS_URL",
    "BUILDKITE",
    "CIRCLECI",
    "APPVEYOR",
)
"""Any of these set (and not falsy) means a CI pipeline execution."""

DEV_OVERRIDE_VAR = "TESTHARBOR_DEV_OVERRIDE"
"""Explicit developer opt-in for destructive tests on a local machine."""

DESTRUCTIVE_ALLOWED_VAR = "TESTHARBOR_DESTRUCTIVE_ALLOWED"
"""Published permission flag consumed by individual test processes."""

GITHUB_ENV_VAR = "GITHUB_ENV"
"""GitHub Actions file used to pass variables to later steps."""

TARGET_PLATFORM = "Windows"
"""platform.system() value of the OS family the tool under test manages."""

TRUTHY_VALUES = frozenset({"1", "true", "yes", "on"})
FALSY_VALUES = frozenset({"", "0", "false", "no", "off"})

# =============================================================================
# Sandbox Layout
# =============================================================================

SANDBOX_PREFIX = "harbor-"
"""Every sandbox root name starts with this; also the user-temp suite marker."""

SANDBOX_SUBDIRS = ("restore", "backup", "work", "state", "logs")
"""Named subdirectories created in every sandbox, in creation order."""

SANDBOX_ROOT_VAR = "TESTHARBOR_SANDBOX_ROOT"
SANDBOX_SUBDIR_VAR_TEMPLATE = "TESTHARBOR_SANDBOX_{name}"

# =============================================================================
# Mock Data
# =============================================================================

MOCK_ROOT_VAR = "TESTHARBOR_MOCK_ROOT"
"""Dynamic mock root for the current container; parent of the lock directory."""

MOCK_COMPONENT_VAR_TEMPLATE = "TESTHARBOR_MOCK_{name}_ROOT"
"""Per-component dynamic root variable; {name} is the upper-cased component."""

LOCK_DIRNAME = ".harbor-lock"
LOCK_FILENAME = "lock.json"

# =============================================================================
# Path Safety
# =============================================================================

CI_TEMP_ENV_VARS = ("RUNNER_TEMP", "AGENT_TEMPDIRECTORY")
"""CI runner temp conventions (GitHub Actions, Azure Pipelines)."""

PROTECTED_ROOTS = (
    # POSIX system directories
    "/bin",
    "/boot",
    "/dev",
    "/etc",
    "/lib",
    "/lib32",
    "/lib64",
    "/opt",
    "/proc",
    "/root",
    "/run",
    "/sbin",
    "/srv",
    "/sys",
    "/usr",
    "/var",
    # macOS
    "/System",
    "/Library",
    "/Applications",
    "/private",
    # Windows (drive letters are stripped before matching)
    "/Windows",
    "/Program Files",
    "/Program Files (x86)",
    "/ProgramData",
    "/Users/Default",
    "/Users/Public",
)
"""Always-dangerous prefixes, matched case-insensitively."""

# =============================================================================
# Reporting
# =============================================================================

TREND_TOLERANCE_PCT = 0.5
"""Success-rate change (percentage points) below which a trend is stable."""
