"""Context Compaction Value Objects."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, FrozenSet


class BudgetUnit(Enum):
    """Unit a compaction budget is expressed in."""
    TOKENS = "tokens"
    BYTES = "bytes"

    @classmethod
    def from_string(cls, value: str) -> "BudgetUnit":
        normalized = value.lower().strip()
        for unit in cls:
            if unit.value == normalized:
                return unit
        raise ValueError(
            f"Unknown budget unit: '{value}'. Valid units: {[u.value for u in cls]}"
        )


def serialize_compact(payload: Any) -> str:
    """Serialize the way the compacted context is handed downstream."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


@dataclass(frozen=True)
class CostModel:
    """Cost function: serialized size divided by a bytes-per-unit ratio.

    Monotonic by construction: adding content never shrinks the
    serialized form, and ceil() preserves ordering.
    """
    unit: BudgetUnit
    bytes_per_unit: float

    TOKEN_BYTES: ClassVar[float] = 4.0

    def __post_init__(self) -> None:
        if self.bytes_per_unit <= 0:
            raise ValueError(f"bytes_per_unit must be positive, got {self.bytes_per_unit}")

    @classmethod
    def for_unit(cls, unit: BudgetUnit) -> CostModel:
        if unit == BudgetUnit.TOKENS:
            return cls(unit=unit, bytes_per_unit=cls.TOKEN_BYTES)
        return cls(unit=unit, bytes_per_unit=1.0)

    def cost_of_bytes(self, size: int) -> int:
        return math.ceil(size / self.bytes_per_unit)

    def estimate(self, payload: Any) -> int:
        """Estimated cost of a JSON-serializable payload."""
        return self.cost_of_bytes(byte_length(serialize_compact(payload)))


@dataclass(frozen=True)
class TokenEstimate:
    """Cost estimate for budget checking."""
    byte_count: int
    estimated_cost: int
    budget: int
    unit: BudgetUnit = BudgetUnit.TOKENS

    @classmethod
    def from_payload(cls, payload: Any, budget: int, cost_model: CostModel) -> TokenEstimate:
        size = byte_length(serialize_compact(payload))
        return cls(
            byte_count=size,
            estimated_cost=cost_model.cost_of_bytes(size),
            budget=budget,
            unit=cost_model.unit,
        )

    @property
    def within_budget(self) -> bool:
        return self.estimated_cost <= self.budget

    @property
    def overage(self) -> int:
        return max(0, self.estimated_cost - self.budget)


_HEADING_TYPES = frozenset({"h1", "h2", "h3", "h4", "h5", "h6", "heading"})
_FORM_CONTROL_TYPES = frozenset({
    "input", "select", "textarea", "button", "form", "label", "option",
})
_NOISE_TYPES = frozenset({"script", "style", "meta", "link", "noscript"})
_GENERIC_CONTAINER_TYPES = frozenset({
    "div", "span", "section", "container", "group", "generic", "pane",
})


@dataclass(frozen=True)
class ScoringRules:
    """Additive relevance rules plus type allow/deny lists.

    Type names are matched case-insensitively. The allow list wins over
    both deny lists.
    """
    interactable_weight: float = 100.0
    visible_weight: float = 50.0
    focus_weight: float = 75.0
    text_weight: float = 25.0
    depth_base: float = 20.0
    depth_step: float = 2.0
    force_include_types: FrozenSet[str] = _HEADING_TYPES | _FORM_CONTROL_TYPES
    exclude_types: FrozenSet[str] = _NOISE_TYPES
    generic_container_types: FrozenSet[str] = _GENERIC_CONTAINER_TYPES

    @classmethod
    def default(cls) -> ScoringRules:
        return cls()

    @classmethod
    def without_type_lists(cls) -> ScoringRules:
        """Pure score ordering with no forced inclusion or exclusion."""
        return cls(
            force_include_types=frozenset(),
            exclude_types=frozenset(),
            generic_container_types=frozenset(),
        )

    def is_forced(self, element_type: str) -> bool:
        return element_type.lower() in self.force_include_types

    def is_excluded_type(self, element_type: str) -> bool:
        return element_type.lower() in self.exclude_types

    def is_generic_container(self, element_type: str) -> bool:
        return element_type.lower() in self.generic_container_types

    def depth_bonus(self, depth: int) -> float:
        """Elements nearer the root score higher."""
        return max(0.0, self.depth_base - depth * self.depth_step)
