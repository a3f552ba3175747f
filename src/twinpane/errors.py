"""Error types for the synchronization core.

None of these reach the hosting UI. They are raised inside the core and
recovered locally, leaving the raw surface editable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Machine-readable codes attached to core errors."""

    MALFORMED_ANNOTATION = "malformed_annotation"
    STALE_RESULT = "stale_result"
    UNAUTHORIZED_FREEZE = "unauthorized_freeze"


@dataclass
class TwinpaneError(Exception):
    """Base class carrying a code, a message and structured details."""

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class MalformedAnnotationError(TwinpaneError):
    """Annotation payload failed shape validation."""

    error_code: str = field(default=ErrorCode.MALFORMED_ANNOTATION)
    message: str = field(default="Annotation payload does not match the expected shape")
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "warning"


@dataclass
class StaleResultError(TwinpaneError):
    """Annotation payload belongs to a superseded request generation."""

    error_code: str = field(default=ErrorCode.STALE_RESULT)
    message: str = field(default="Annotation result belongs to a superseded request")
    details: dict[str, Any] = field(default_factory=dict)
    received: int = 0
    current: int = 0

    severity: ClassVar[str] = "info"

    def __post_init__(self) -> None:
        self.details.setdefault("received", self.received)
        self.details.setdefault("current", self.current)
        TwinpaneError.__post_init__(self)


@dataclass
class UnauthorizedFreezeError(TwinpaneError):
    """Freeze toggle attempted without the freeze capability."""

    error_code: str = field(default=ErrorCode.UNAUTHORIZED_FREEZE)
    message: str = field(default="Freezing terms requires an upgraded plan")
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "warning"


__all__ = [
    "ErrorCode",
    "TwinpaneError",
    "MalformedAnnotationError",
    "StaleResultError",
    "UnauthorizedFreezeError",
]
