"""
Domain Events for the UI State bounded context.

Domain events represent something that happened in the domain that other
contexts (caches, transport adapters, metrics) may react to.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StateCaptured:
    """
    Emitted when a full snapshot enters the engine.

    Either seeded by an initial state or captured from an extractor.
    """
    version: str
    element_count: int
    interactable_count: int
    timestamp: datetime = field(default_factory=_utcnow)
    application: Optional[str] = None
    title: Optional[str] = None

    @property
    def event_type(self) -> str:
        return "ui_state.captured"

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "version": self.version,
            "element_count": self.element_count,
            "interactable_count": self.interactable_count,
            "timestamp": self.timestamp.isoformat(),
            "application": self.application,
            "title": self.title,
        }


@dataclass
class StateDiffComputed:
    """
    Emitted when a patch is computed between two snapshots.
    """
    base_version: str
    version: str
    added_ids: List[str]
    removed_ids: List[str]
    modified_ids: List[str] = field(default_factory=list)
    focus_changed: bool = False
    hover_changed: bool = False
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def event_type(self) -> str:
        return "ui_state.diff_computed"

    @property
    def has_changes(self) -> bool:
        """Check if there were any changes."""
        return bool(
            self.added_ids or self.removed_ids or self.modified_ids
            or self.focus_changed or self.hover_changed
        )

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "base_version": self.base_version,
            "version": self.version,
            "added_ids": list(self.added_ids),
            "removed_ids": list(self.removed_ids),
            "modified_ids": list(self.modified_ids),
            "focus_changed": self.focus_changed,
            "hover_changed": self.hover_changed,
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"StateDiffComputed({self.base_version} -> {self.version}, "
            f"+{len(self.added_ids)} -{len(self.removed_ids)} ~{len(self.modified_ids)})"
        )


@dataclass
class StateUpdateApplied:
    """
    Emitted when a differential update produced a new snapshot.
    """
    base_version: str
    version: str
    change_count: int
    element_count: int
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def event_type(self) -> str:
        return "ui_state.update_applied"

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "base_version": self.base_version,
            "version": self.version,
            "change_count": self.change_count,
            "element_count": self.element_count,
            "timestamp": self.timestamp.isoformat(),
        }
