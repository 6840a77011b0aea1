"""ModelEyes - Differential UI-state synchronization and context compaction."""

from modeleyes.components.state_sync_engine import ContextOptions, StateSyncEngine  # noqa: F401
from modeleyes.domains.context_compaction import CompactedContext, CompactionConfig  # noqa: F401
from modeleyes.domains.shared import (  # noqa: F401
    ModelEyesError,
    NoCurrentStateError,
    StateValidationError,
    VersionMismatchError,
)
from modeleyes.domains.ui_state import (  # noqa: F401
    DifferentialUpdate,
    UIElement,
    UIState,
    apply_update,
    compute_diff,
)
from modeleyes.models.config_models import EngineConfig  # noqa: F401

__all__ = [
    "CompactedContext",
    "CompactionConfig",
    "ContextOptions",
    "DifferentialUpdate",
    "EngineConfig",
    "ModelEyesError",
    "NoCurrentStateError",
    "StateSyncEngine",
    "StateValidationError",
    "UIElement",
    "UIState",
    "VersionMismatchError",
    "apply_update",
    "compute_diff",
]

__version__ = "0.1.0"
