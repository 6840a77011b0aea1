"""Context Compaction Aggregate Root."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

from .value_objects import BudgetUnit, ScoringRules


@dataclass(frozen=True)
class CompactionConfig:
    """Settings for one compaction run.

    Invariants:
    - Budget must be non-negative
    - max_elements, when set, must be positive
    """
    budget: int
    unit: BudgetUnit = BudgetUnit.TOKENS
    include_invisible: bool = False
    include_full_details: bool = True
    max_elements: Optional[int] = None
    rules: ScoringRules = field(default_factory=ScoringRules.default)

    __test__ = False  # Suppress pytest collection

    def __post_init__(self) -> None:
        if self.budget < 0:
            raise ValueError("Budget must be non-negative")
        if self.max_elements is not None and self.max_elements <= 0:
            raise ValueError("max_elements must be positive when set")

    @classmethod
    def create_default(cls) -> CompactionConfig:
        """Standard config: full element details, invisible elements dropped."""
        return cls(budget=4000)

    @classmethod
    def create_compact(cls) -> CompactionConfig:
        """Compact config: essential details, at most 50 elements."""
        return cls(
            budget=1500,
            include_full_details=False,
            max_elements=50,
        )

    @classmethod
    def create_verbose(cls) -> CompactionConfig:
        """Verbose config: large budget, invisible elements kept."""
        return cls(budget=10000, include_invisible=True)

    @classmethod
    def from_preset(cls, name: str) -> CompactionConfig:
        presets = {
            "default": cls.create_default,
            "compact": cls.create_compact,
            "verbose": cls.create_verbose,
        }
        try:
            return presets[name.lower().strip()]()
        except KeyError:
            raise ValueError(
                f"Unknown compaction preset: '{name}'. Valid presets: {sorted(presets)}"
            ) from None

    def with_overrides(
        self,
        *,
        budget: Optional[int] = None,
        unit: Optional[BudgetUnit] = None,
        include_invisible: Optional[bool] = None,
        include_full_details: Optional[bool] = None,
        max_elements: Optional[int] = None,
    ) -> CompactionConfig:
        """Return a copy with the provided overrides applied."""
        cfg = self
        if budget is not None:
            cfg = replace(cfg, budget=budget)
        if unit is not None:
            cfg = replace(cfg, unit=unit)
        if include_invisible is not None:
            cfg = replace(cfg, include_invisible=include_invisible)
        if include_full_details is not None:
            cfg = replace(cfg, include_full_details=include_full_details)
        if max_elements is not None:
            cfg = replace(cfg, max_elements=max_elements)
        return cfg
