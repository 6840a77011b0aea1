"""
Differential snapshot tracking.

Computes the minimal patch between two snapshots so that only changed
elements travel between processes and into the model context.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from modeleyes.domains.ui_state.aggregates import UIState
from modeleyes.domains.ui_state.entities import MUTABLE_FIELDS, UIElement, field_to_wire
from modeleyes.domains.ui_state.events import StateDiffComputed
from modeleyes.domains.ui_state.value_objects import (
    UNCHANGED,
    DifferentialUpdate,
    ElementChanges,
)

logger = logging.getLogger(__name__)


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def fingerprint_element(element: UIElement) -> str:
    """Compute a content hash used to cheaply detect "no change".

    Covers type, text, bounds, interactable, visible and attributes.
    Styles are left out so incidental style recomputation does not
    register as a change on its own.

    Args:
        element: The element to hash

    Returns:
        Hex digest of the canonical JSON form
    """
    canonical = {
        "type": element.type,
        "text": element.text or "",
        "bounds": element.bounds.to_dict(),
        "interactable": element.interactable,
        "visible": element.visible,
        "attributes": dict(element.attributes),
    }
    payload = _canonical_json(canonical)
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def compute_element_changes(old: UIElement, new: UIElement) -> ElementChanges:
    """
    Compute the field-level delta between two versions of an element.

    Fields are compared by their canonical JSON form, so ``True``, ``1``
    and ``1.0`` are different values. ``attributes`` and ``styles`` are
    emitted as whole maps when any key differs.

    Args:
        old: Previous version of the element
        new: Current version of the element

    Returns:
        Mapping of changed field names to their new values
    """
    changes: ElementChanges = {}
    for name in MUTABLE_FIELDS:
        old_value = getattr(old, name)
        new_value = getattr(new, name)
        if old_value is new_value:
            continue
        if _canonical_json(field_to_wire(name, old_value)) != \
                _canonical_json(field_to_wire(name, new_value)):
            changes[name] = new_value
    return changes


@dataclass
class SnapshotDiffStats:
    """Statistics about what changed between two snapshots."""
    added: int = 0
    removed: int = 0
    modified: int = 0
    unchanged: int = 0
    field_changes: Dict[str, int] = field(default_factory=dict)

    @property
    def change_count(self) -> int:
        return self.added + self.removed + self.modified

    @property
    def total_elements(self) -> int:
        return self.change_count + self.unchanged

    @property
    def change_ratio(self) -> float:
        """Ratio of changed elements to all elements seen."""
        if self.total_elements == 0:
            return 0.0
        return self.change_count / self.total_elements

    def to_dict(self) -> Dict[str, object]:
        return {
            "added": self.added,
            "removed": self.removed,
            "modified": self.modified,
            "unchanged": self.unchanged,
            "change_ratio": round(self.change_ratio, 4),
            "field_changes": dict(self.field_changes),
        }


class StateDiffService:
    """
    Service for computing differential updates between snapshots.

    Pure with respect to its inputs: the same pair of snapshots always
    yields the same patch, and neither snapshot is touched.
    """

    def __init__(
        self,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._event_publisher = event_publisher

    def compute_diff(self, old: UIState, new: UIState) -> DifferentialUpdate:
        """
        Compute the patch that turns ``old`` into ``new``.

        Args:
            old: The previous/baseline snapshot
            new: The current snapshot

        Returns:
            DifferentialUpdate with ``base_version == old.version``
        """
        update, _ = self.compute_diff_with_stats(old, new)
        return update

    def compute_diff_with_stats(
        self, old: UIState, new: UIState
    ) -> Tuple[DifferentialUpdate, SnapshotDiffStats]:
        """
        Compute the patch together with change statistics.

        Args:
            old: The previous snapshot
            new: The current snapshot

        Returns:
            Tuple of (DifferentialUpdate, SnapshotDiffStats)
        """
        stats = SnapshotDiffStats()
        added: Dict[str, UIElement] = {}
        modified: Dict[str, ElementChanges] = {}

        for element_id in sorted(new.elements):
            element = new.elements[element_id]
            previous = old.elements.get(element_id)
            if previous is None:
                added[element_id] = element
                continue

            # Equal fingerprints still get a full comparison: styles,
            # children and parent are outside the hash, and collisions
            # must not hide a change.
            if fingerprint_element(previous) == fingerprint_element(element) \
                    and _canonical_json(previous.to_dict()) == _canonical_json(element.to_dict()):
                stats.unchanged += 1
                continue

            changes = compute_element_changes(previous, element)
            if not changes:
                stats.unchanged += 1
                continue
            modified[element_id] = changes
            for name in changes:
                stats.field_changes[name] = stats.field_changes.get(name, 0) + 1

        removed = tuple(sorted(
            element_id for element_id in old.elements
            if element_id not in new.elements
        ))

        stats.added = len(added)
        stats.modified = len(modified)
        stats.removed = len(removed)

        update = DifferentialUpdate(
            timestamp=new.timestamp,
            base_version=old.version,
            version=new.version,
            added=added,
            modified=modified,
            removed=removed,
            focus=new.focus if old.focus != new.focus else UNCHANGED,
            hover=new.hover if old.hover != new.hover else UNCHANGED,
        )

        logger.debug(
            f"Diff {old.version} -> {new.version}: +{stats.added} "
            f"-{stats.removed} ~{stats.modified} ({stats.unchanged} unchanged)"
        )
        self._publish(StateDiffComputed(
            base_version=old.version,
            version=new.version,
            added_ids=list(added),
            removed_ids=list(removed),
            modified_ids=list(modified),
            focus_changed=update.focus_changed,
            hover_changed=update.hover_changed,
        ))
        return update, stats

    def _publish(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")


def compute_diff(old: UIState, new: UIState) -> DifferentialUpdate:
    """Compute the patch between two snapshots with a default service."""
    return StateDiffService().compute_diff(old, new)
