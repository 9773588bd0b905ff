"""Execution-context classification models."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class EnvironmentKind(str, Enum):
    """Where the suite is running, strongest isolation first."""

    CONTAINERIZED = "containerized"
    CONTINUOUS_INTEGRATION = "continuous_integration"
    INTERACTIVE_LOCAL = "interactive_local"


@dataclass(frozen=True, slots=True)
class EnvironmentClassification:
    """Result of classify(). Immutable, never persisted across runs."""

    kind: EnvironmentKind
    is_target_platform: bool
    authorized_override: bool = False
    # Which indicators fired, e.g. ("marker:/.dockerenv", "env:CI")
    signals: tuple[str, ...] = ()
    # Conflicting indicators that were resolved by precedence
    ambiguities: tuple[str, ...] = ()

    @property
    def is_containerized(self) -> bool:
        return self.kind is EnvironmentKind.CONTAINERIZED

    @property
    def is_ci(self) -> bool:
        return self.kind is EnvironmentKind.CONTINUOUS_INTEGRATION

    @property
    def is_local(self) -> bool:
        return self.kind is EnvironmentKind.INTERACTIVE_LOCAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "is_target_platform": self.is_target_platform,
            "authorized_override": self.authorized_override,
            "signals": list(self.signals),
            "ambiguities": list(self.ambiguities),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
