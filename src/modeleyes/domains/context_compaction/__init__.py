"""Context Compaction Bounded Context.

Reduces a snapshot to fit a token or byte budget for a size-limited
consumer: normalization, relevance scoring, and greedy budget filling.

Usage:
    from modeleyes.domains.context_compaction import (
        CompactionConfig,
        ContextCompactor,
    )

    compactor = ContextCompactor()
    context = compactor.compact(state, budget=2000)
    payload = context.to_dict()
"""

from modeleyes.domains.context_compaction.aggregates import CompactionConfig
from modeleyes.domains.context_compaction.events import ContextCompacted
from modeleyes.domains.context_compaction.services import (
    CompactedContext,
    CompactionMetrics,
    ContextCompactor,
    normalize_element,
    normalize_state,
)
from modeleyes.domains.context_compaction.value_objects import (
    BudgetUnit,
    CostModel,
    ScoringRules,
    TokenEstimate,
    byte_length,
    serialize_compact,
)

__all__ = [
    "BudgetUnit",
    "CompactedContext",
    "CompactionConfig",
    "CompactionMetrics",
    "ContextCompacted",
    "ContextCompactor",
    "CostModel",
    "ScoringRules",
    "TokenEstimate",
    "byte_length",
    "normalize_element",
    "normalize_state",
    "serialize_compact",
]
