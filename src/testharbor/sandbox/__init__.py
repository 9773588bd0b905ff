"""Sandbox provisioning, teardown and readiness waits."""

from testharbor.sandbox.manager import IsolatedEnvironmentManager, slugify
from testharbor.sandbox.models import SandboxHandle
from testharbor.sandbox.readiness import http_probe, tcp_probe, wait_until_ready, wait_with_config

__all__ = [
    "IsolatedEnvironmentManager",
    "SandboxHandle",
    "slugify",
    "http_probe",
    "tcp_probe",
    "wait_until_ready",
    "wait_with_config",
]
