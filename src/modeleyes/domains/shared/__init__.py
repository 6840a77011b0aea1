"""Shared Kernel for the ModelEyes bounded contexts."""

from modeleyes.domains.shared.kernel import (
    PLATFORMS,
    Bounds,
    BudgetUnitLiteral,
    CompactionPresetLiteral,
    ModelEyesError,
    NoCurrentStateError,
    PlatformLiteral,
    Scalar,
    ScalarMap,
    StateValidationError,
    VersionMismatchError,
    Viewport,
    coerce_scalar_map,
)

__all__ = [
    "PLATFORMS",
    "Bounds",
    "BudgetUnitLiteral",
    "CompactionPresetLiteral",
    "ModelEyesError",
    "NoCurrentStateError",
    "PlatformLiteral",
    "Scalar",
    "ScalarMap",
    "StateValidationError",
    "VersionMismatchError",
    "Viewport",
    "coerce_scalar_map",
]
