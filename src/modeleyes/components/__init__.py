"""Engine components for ModelEyes."""

from modeleyes.components.state_sync_engine import ContextOptions, StateSyncEngine

__all__ = ["ContextOptions", "StateSyncEngine"]
