"""Context Compaction Domain Events."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


@dataclass(frozen=True)
class ContextCompacted:
    """Emitted after a snapshot was reduced to fit a budget."""
    version: str
    unit: str
    budget: int
    raw_cost: int
    compacted_cost: int
    elements_included: int
    elements_reduced: int
    elements_dropped: int
    budget_satisfied: bool
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "context_compaction.compacted",
            "version": self.version,
            "unit": self.unit,
            "budget": self.budget,
            "raw_cost": self.raw_cost,
            "compacted_cost": self.compacted_cost,
            "elements_included": self.elements_included,
            "elements_reduced": self.elements_reduced,
            "elements_dropped": self.elements_dropped,
            "budget_satisfied": self.budget_satisfied,
            "timestamp": self.timestamp.isoformat(),
        }
