"""Execution-context classification."""

from testharbor.environment.classifier import classify, is_set, is_truthy
from testharbor.environment.models import EnvironmentClassification, EnvironmentKind

__all__ = [
    "classify",
    "is_set",
    "is_truthy",
    "EnvironmentClassification",
    "EnvironmentKind",
]
