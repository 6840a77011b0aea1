"""
Differential update application.

Rebuilds a snapshot from a base snapshot plus a patch. The base is never
modified, so concurrent readers of the base stay safe.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Dict, Optional

from modeleyes.domains.shared.kernel import StateValidationError, VersionMismatchError
from modeleyes.domains.ui_state.aggregates import UIState
from modeleyes.domains.ui_state.entities import UIElement
from modeleyes.domains.ui_state.events import StateUpdateApplied
from modeleyes.domains.ui_state.value_objects import DifferentialUpdate

logger = logging.getLogger(__name__)


class StateUpdateService:
    """
    Service applying differential updates to snapshots.

    Order of application: added elements are merged in, modified
    elements are field-merged onto the result, removed ids are deleted.
    """

    def __init__(
        self,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._event_publisher = event_publisher

    def apply(self, base: UIState, update: DifferentialUpdate) -> UIState:
        """
        Apply a patch to the snapshot it was computed against.

        Args:
            base: Snapshot whose version equals ``update.base_version``
            update: The patch to apply

        Returns:
            A new UIState carrying the patch's version and timestamp

        Raises:
            VersionMismatchError: If the patch targets a different version
            StateValidationError: If ``modified`` names an element the base lacks
        """
        if update.base_version != base.version:
            raise VersionMismatchError(update.base_version, base.version)

        elements: Dict[str, UIElement] = dict(base.elements)
        elements.update(update.added)

        for element_id, changes in update.modified.items():
            current = elements.get(element_id)
            if current is None:
                raise StateValidationError(
                    f"Update {update.version!r} modifies element {element_id!r} "
                    f"which is not present in version {base.version!r}"
                )
            elements[element_id] = current.with_changes(changes)

        for element_id in update.removed:
            elements.pop(element_id, None)

        result = replace(
            base,
            timestamp=update.timestamp,
            version=update.version,
            elements=elements,
            focus=update.focus if update.focus_changed else base.focus,
            hover=update.hover if update.hover_changed else base.hover,
        )

        logger.debug(
            f"Applied update {base.version} -> {update.version} "
            f"({update.change_count} element changes)"
        )
        self._publish(StateUpdateApplied(
            base_version=base.version,
            version=update.version,
            change_count=update.change_count,
            element_count=result.element_count,
        ))
        return result

    def _publish(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")


def apply_update(base: UIState, update: DifferentialUpdate) -> UIState:
    """Apply a patch with a default service."""
    return StateUpdateService().apply(base, update)
