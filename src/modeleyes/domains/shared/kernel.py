"""Shared Kernel - Core domain types shared across bounded contexts.

These types are intentionally minimal and shared between:
- UI State Context (elements, snapshots, patches)
- State Cache Context (stores snapshots and elements)
- Context Compaction Context (scores and prunes elements)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BeforeValidator

Scalar = Union[str, int, float, bool, None]
"""Value type allowed in element ``attributes`` and ``styles`` maps."""

ScalarMap = Dict[str, Scalar]

PLATFORMS = ("web", "windows", "macos", "linux")


# ============================================================
# Error taxonomy
# ============================================================


class ModelEyesError(Exception):
    """Base class for all engine errors."""


class VersionMismatchError(ModelEyesError):
    """A patch does not apply to the requested base snapshot.

    Recoverable: the caller should request a full snapshot instead of
    a differential update.
    """

    def __init__(self, expected_version: Optional[str], actual_version: Optional[str]) -> None:
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Update base version {expected_version!r} does not match "
            f"current state version {actual_version!r}"
        )


class StateValidationError(ModelEyesError, ValueError):
    """A snapshot or patch is malformed.

    Not recoverable locally; surfaced to whoever handed the data in.
    """

    def __init__(self, message: str, problems: Optional[List[str]] = None) -> None:
        self.problems = list(problems or [])
        if self.problems:
            message = f"{message}: " + "; ".join(self.problems)
        super().__init__(message)


class NoCurrentStateError(ModelEyesError, LookupError):
    """An operation needs a current snapshot but none has been seeded."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"No current state available for {operation}")


# ============================================================
# Geometry value objects
# ============================================================


def _require_number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StateValidationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise StateValidationError(f"{name} must be finite, got {value!r}")
    return value


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned rectangle in viewport coordinates."""
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            _require_number(f"bounds.{name}", getattr(self, name))
        if self.width < 0 or self.height < 0:
            raise StateValidationError(
                f"bounds width/height must be >= 0, got {self.width}x{self.height}"
            )

    @property
    def is_renderable(self) -> bool:
        """Zero-area rectangles cannot be rendered."""
        return self.width != 0 and self.height != 0

    def rounded(self) -> "Bounds":
        """Round every coordinate half-up to an integer."""
        return Bounds(
            x=_round_half_up(self.x),
            y=_round_half_up(self.y),
            width=_round_half_up(self.width),
            height=_round_half_up(self.height),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Bounds":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise StateValidationError(f"bounds must be an object, got {data!r}")
        return cls(
            x=data.get("x", 0),
            y=data.get("y", 0),
            width=data.get("width", 0),
            height=data.get("height", 0),
        )


@dataclass(frozen=True)
class Viewport:
    """Visible area of the captured application."""
    width: float = 0
    height: float = 0

    def __post_init__(self) -> None:
        _require_number("viewport.width", self.width)
        _require_number("viewport.height", self.height)

    def to_dict(self) -> Dict[str, float]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Viewport":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise StateValidationError(f"viewport must be an object, got {data!r}")
        return cls(width=data.get("width", 0), height=data.get("height", 0))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def coerce_scalar_map(name: str, data: Optional[Mapping[str, Any]]) -> ScalarMap:
    """Validate a string-keyed map of scalar values and return a copy.

    Raises:
        StateValidationError: If a key is not a string or a value is not scalar
    """
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise StateValidationError(f"{name} must be an object, got {data!r}")
    result: ScalarMap = {}
    for key, value in data.items():
        if not isinstance(key, str):
            raise StateValidationError(f"{name} keys must be strings, got {key!r}")
        if value is not None and not isinstance(value, (str, int, float, bool)):
            raise StateValidationError(
                f"{name}[{key!r}] must be a scalar value, got {type(value).__name__}"
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise StateValidationError(f"{name}[{key!r}] must be finite")
        result[key] = value
    return result


# ============================================================
# Type-constrained tool parameters
# ============================================================
#
# Literal type aliases with BeforeValidator for case-insensitive
# normalization. Produces flat {"enum": [...]} in JSON Schema
# while accepting wrong-case input at runtime.
# ============================================================


def _normalize_str(v: Any) -> Any:
    """Normalize string input: strip whitespace, lowercase."""
    return v.strip().lower() if isinstance(v, str) else v


PlatformLiteral = Annotated[
    Literal["web", "windows", "macos", "linux"],
    BeforeValidator(_normalize_str),
]

BudgetUnitLiteral = Annotated[
    Literal["tokens", "bytes"],
    BeforeValidator(_normalize_str),
]

CompactionPresetLiteral = Annotated[
    Literal["default", "compact", "verbose"],
    BeforeValidator(_normalize_str),
]
