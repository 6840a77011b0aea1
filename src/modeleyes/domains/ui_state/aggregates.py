"""Aggregates for the UI State Context.

UIState is the aggregate root: a complete, self-contained capture of an
application's UI at one instant. It owns its elements exclusively.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional

from modeleyes.domains.shared.kernel import (
    PLATFORMS,
    StateValidationError,
    Viewport,
)
from modeleyes.domains.ui_state.entities import UIElement


@dataclass(frozen=True)
class UIState:
    """Snapshot of a user interface.

    Invariants:
    - every id in ``children`` or ``parent`` exists in ``elements``
    - ``elements`` keys equal the ids of the elements they map to
    - ``version`` is opaque: compared for equality only, never ordered
    """

    timestamp: float
    """Capture instant; non-decreasing for snapshots of one source."""

    platform: str
    """Platform identifier (web, windows, macos, linux)."""

    application: str
    """Application identifier."""

    title: str
    """Window or page title."""

    version: str
    """Opaque version identifier assigned by the extractor."""

    viewport: Viewport = field(default_factory=Viewport)
    """Viewport dimensions."""

    elements: Dict[str, UIElement] = field(default_factory=dict)
    """All elements keyed by id."""

    url: Optional[str] = None
    """URL for web applications."""

    focus: Optional[str] = None
    """Id of the focused element."""

    hover: Optional[str] = None
    """Id of the hovered element."""

    @property
    def element_count(self) -> int:
        return len(self.elements)

    @property
    def interactable_count(self) -> int:
        return sum(1 for element in self.elements.values() if element.interactable)

    def get_element(self, element_id: str) -> Optional[UIElement]:
        """Look up an element by id, None if absent."""
        return self.elements.get(element_id)

    def root_ids(self) -> List[str]:
        """Ids of elements with no resolvable parent, in mapping order."""
        return [
            element_id
            for element_id, element in self.elements.items()
            if element.parent is None or element.parent not in self.elements
        ]

    def traversal_order(self) -> List[str]:
        """Canonical traversal order of all element ids.

        Depth-first along ``children`` from each root. Extraction can
        produce cycles, so a visited set guards the walk; elements not
        reachable from any root are appended in mapping order.
        """
        visited: set = set()
        order: List[str] = []

        for root_id in self.root_ids():
            stack = [root_id]
            while stack:
                element_id = stack.pop()
                if element_id in visited or element_id not in self.elements:
                    continue
                visited.add(element_id)
                order.append(element_id)
                stack.extend(reversed(self.elements[element_id].children))

        for element_id in self.elements:
            if element_id not in visited:
                visited.add(element_id)
                order.append(element_id)
        return order

    def depth_of(self, element_id: str) -> int:
        """Number of parent hops from the element to a root.

        Stops at a missing parent or when the chain revisits an element.
        """
        depth = 0
        seen = {element_id}
        current = self.elements.get(element_id)
        while current is not None and current.parent is not None:
            parent_id = current.parent
            if parent_id in seen or parent_id not in self.elements:
                break
            seen.add(parent_id)
            depth += 1
            current = self.elements[parent_id]
        return depth

    def iter_elements(self) -> Iterator[UIElement]:
        """Iterate elements in canonical traversal order."""
        for element_id in self.traversal_order():
            yield self.elements[element_id]

    def validate(self) -> List[str]:
        """Check referential integrity and required fields.

        Returns:
            A list of problems; empty when the snapshot is well-formed
        """
        problems: List[str] = []
        if not isinstance(self.version, str) or not self.version:
            problems.append("version must be a non-empty string")
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, (int, float)) \
                or not math.isfinite(self.timestamp):
            problems.append(f"timestamp must be a finite number, got {self.timestamp!r}")
        if self.platform not in PLATFORMS:
            problems.append(f"unknown platform {self.platform!r}")

        for key, element in self.elements.items():
            if key != element.id:
                problems.append(f"element stored under {key!r} has id {element.id!r}")
            for child_id in element.children:
                if child_id not in self.elements:
                    problems.append(f"element {key!r} references missing child {child_id!r}")
            if element.parent is not None and element.parent not in self.elements:
                problems.append(f"element {key!r} references missing parent {element.parent!r}")

        for name in ("focus", "hover"):
            target = getattr(self, name)
            if target is not None and target not in self.elements:
                problems.append(f"{name} references missing element {target!r}")
        return problems

    def ensure_valid(self) -> "UIState":
        """Raise StateValidationError unless :meth:`validate` finds nothing."""
        problems = self.validate()
        if problems:
            raise StateValidationError(f"Invalid UI state {self.version!r}", problems)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire representation."""
        result: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "platform": self.platform,
            "application": self.application,
            "title": self.title,
            "viewport": self.viewport.to_dict(),
            "elements": {
                element_id: element.to_dict()
                for element_id, element in self.elements.items()
            },
            "version": self.version,
        }
        if self.url is not None:
            result["url"] = self.url
        if self.focus is not None:
            result["focus"] = self.focus
        if self.hover is not None:
            result["hover"] = self.hover
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], validate: bool = True) -> "UIState":
        """Parse a snapshot from its wire representation.

        Args:
            data: Snapshot object from an extractor or transport
            validate: Run :meth:`ensure_valid` on the result

        Returns:
            Parsed UIState

        Raises:
            StateValidationError: If the payload is malformed
        """
        if not isinstance(data, Mapping):
            raise StateValidationError(f"UI state must be an object, got {type(data).__name__}")
        missing = [
            name for name in ("timestamp", "platform", "version", "elements")
            if name not in data
        ]
        if missing:
            raise StateValidationError(
                "Malformed UI state",
                [f"missing required field {name!r}" for name in missing],
            )
        raw_elements = data["elements"]
        if not isinstance(raw_elements, Mapping):
            raise StateValidationError("elements must be an object keyed by element id")

        state = cls(
            timestamp=data["timestamp"],
            platform=data["platform"],
            application=data.get("application") or "",
            title=data.get("title") or "",
            version=data["version"],
            viewport=Viewport.from_dict(data.get("viewport")),
            elements={
                element_id: UIElement.from_dict(element, element_id)
                for element_id, element in raw_elements.items()
            },
            url=data.get("url"),
            focus=data.get("focus"),
            hover=data.get("hover"),
        )
        if validate:
            state.ensure_valid()
        return state
