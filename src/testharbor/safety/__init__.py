"""Path safety and destructive-operation gating."""

from testharbor.safety.gate import evaluate, is_destructive_allowed, publish
from testharbor.safety.validator import (
    PathSafetyVerdict,
    SafePathValidator,
    Verdict,
    normalize_path,
)

__all__ = [
    "evaluate",
    "is_destructive_allowed",
    "publish",
    "PathSafetyVerdict",
    "SafePathValidator",
    "Verdict",
    "normalize_path",
]
