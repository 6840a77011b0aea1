"""UI State Bounded Context for ModelEyes.

This module provides the domain model for captured UI snapshots and the
differential updates between them.

Key Components:
- UIState: Aggregate root holding one snapshot of an application's UI
- UIElement: Entity for a single node of the UI tree
- DifferentialUpdate: Value object describing the change between snapshots
- StateDiffService: Domain service computing patches
- StateUpdateService: Domain service applying patches

Example Usage:
    from modeleyes.domains.ui_state import (
        StateDiffService,
        StateUpdateService,
        UIState,
    )

    old = UIState.from_dict(previous_payload)
    new = UIState.from_dict(current_payload)

    update = StateDiffService().compute_diff(old, new)
    rebuilt = StateUpdateService().apply(old, update)
    assert rebuilt == new
"""

from modeleyes.domains.ui_state.aggregates import UIState
from modeleyes.domains.ui_state.diff_service import (
    SnapshotDiffStats,
    StateDiffService,
    compute_diff,
    compute_element_changes,
    fingerprint_element,
)
from modeleyes.domains.ui_state.entities import MUTABLE_FIELDS, UIElement
from modeleyes.domains.ui_state.events import (
    StateCaptured,
    StateDiffComputed,
    StateUpdateApplied,
)
from modeleyes.domains.ui_state.patch_service import StateUpdateService, apply_update
from modeleyes.domains.ui_state.value_objects import (
    UNCHANGED,
    DifferentialUpdate,
    ElementChanges,
)

__all__ = [
    # Entities
    "MUTABLE_FIELDS",
    "UIElement",
    # Aggregates
    "UIState",
    # Value Objects
    "UNCHANGED",
    "DifferentialUpdate",
    "ElementChanges",
    # Domain Events
    "StateCaptured",
    "StateDiffComputed",
    "StateUpdateApplied",
    # Domain Services
    "SnapshotDiffStats",
    "StateDiffService",
    "StateUpdateService",
    "apply_update",
    "compute_diff",
    "compute_element_changes",
    "fingerprint_element",
]
