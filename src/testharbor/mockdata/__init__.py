"""Static/dynamic mock fixture data."""

from testharbor.mockdata.lock import DockerEnvironmentLock
from testharbor.mockdata.models import MockComponent, ResetResult
from testharbor.mockdata.partition import ALL_COMPONENTS, MockDataPartition, component_env_var

__all__ = [
    "ALL_COMPONENTS",
    "DockerEnvironmentLock",
    "MockComponent",
    "MockDataPartition",
    "ResetResult",
    "component_env_var",
]
