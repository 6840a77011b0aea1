"""
Value Objects for the UI State bounded context.

Value objects are immutable and defined by their attributes rather than identity.
The central one is DifferentialUpdate, the patch between two snapshots.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from modeleyes.domains.shared.kernel import StateValidationError
from modeleyes.domains.ui_state.entities import (
    MUTABLE_FIELDS,
    UIElement,
    field_to_wire,
    parse_field_value,
)


class _Unchanged:
    """Marker for a focus/hover value the patch does not touch."""

    _instance: Optional["_Unchanged"] = None

    def __new__(cls) -> "_Unchanged":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNCHANGED"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Unchanged":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_Unchanged":
        return self


UNCHANGED = _Unchanged()
"""Sentinel: the patch leaves focus/hover as it was. ``None`` means cleared."""

FocusChange = Union[str, None, _Unchanged]

ElementChanges = Dict[str, Any]
"""Partial element: field name -> new value, only for changed fields."""


@dataclass(frozen=True)
class DifferentialUpdate:
    """
    Minimal description of the difference between two snapshots.

    A patch is produced once by the diff service and never mutated. It
    applies only to the snapshot whose version equals ``base_version``.
    """
    timestamp: float
    base_version: str
    version: str
    added: Dict[str, UIElement] = field(default_factory=dict)
    modified: Dict[str, ElementChanges] = field(default_factory=dict)
    removed: Tuple[str, ...] = ()
    focus: FocusChange = UNCHANGED
    hover: FocusChange = UNCHANGED

    def __post_init__(self) -> None:
        if not isinstance(self.removed, tuple):
            object.__setattr__(self, "removed", tuple(self.removed))
        for element_id, changes in self.modified.items():
            unknown = set(changes) - set(MUTABLE_FIELDS)
            if unknown:
                raise StateValidationError(
                    f"Modified element {element_id!r} names unknown fields {sorted(unknown)}"
                )

    @property
    def focus_changed(self) -> bool:
        return self.focus is not UNCHANGED

    @property
    def hover_changed(self) -> bool:
        return self.hover is not UNCHANGED

    @property
    def is_empty(self) -> bool:
        """True when the patch signals "no change"."""
        return not (
            self.added or self.modified or self.removed
            or self.focus_changed or self.hover_changed
        )

    @property
    def change_count(self) -> int:
        """Number of element-level changes carried by the patch."""
        return len(self.added) + len(self.modified) + len(self.removed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire representation.

        Empty collections and unchanged focus/hover are omitted; a cleared
        focus/hover is emitted as ``null``.
        """
        result: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "baseVersion": self.base_version,
            "version": self.version,
        }
        if self.added:
            result["added"] = {
                element_id: element.to_dict()
                for element_id, element in self.added.items()
            }
        if self.modified:
            result["modified"] = {
                element_id: {
                    name: field_to_wire(name, value)
                    for name, value in changes.items()
                }
                for element_id, changes in self.modified.items()
            }
        if self.removed:
            result["removed"] = list(self.removed)
        if self.focus_changed:
            result["focus"] = self.focus
        if self.hover_changed:
            result["hover"] = self.hover
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DifferentialUpdate":
        """Parse a patch from its wire representation.

        Raises:
            StateValidationError: If required fields are missing or malformed
        """
        if not isinstance(data, Mapping):
            raise StateValidationError(f"Update must be an object, got {type(data).__name__}")
        problems = [
            f"missing required field {name!r}"
            for name in ("timestamp", "baseVersion", "version")
            if name not in data
        ]
        if problems:
            raise StateValidationError("Malformed differential update", problems)

        added_raw = data.get("added") or {}
        modified_raw = data.get("modified") or {}
        if not isinstance(added_raw, Mapping) or not isinstance(modified_raw, Mapping):
            raise StateValidationError("added/modified must be objects keyed by element id")

        added = {
            element_id: UIElement.from_dict(element, element_id)
            for element_id, element in added_raw.items()
        }
        modified: Dict[str, ElementChanges] = {}
        for element_id, partial in modified_raw.items():
            if not isinstance(partial, Mapping):
                raise StateValidationError(f"modified[{element_id!r}] must be an object")
            modified[element_id] = {
                name: parse_field_value(name, value)
                for name, value in partial.items()
                if name != "id"
            }

        removed = data.get("removed") or []
        if not isinstance(removed, (list, tuple)) or not all(isinstance(r, str) for r in removed):
            raise StateValidationError("removed must be a list of element ids")

        return cls(
            timestamp=_timestamp(data["timestamp"]),
            base_version=_version("baseVersion", data["baseVersion"]),
            version=_version("version", data["version"]),
            added=added,
            modified=modified,
            removed=tuple(removed),
            focus=_focus("focus", data),
            hover=_focus("hover", data),
        )


def _timestamp(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise StateValidationError(f"timestamp must be a finite number, got {value!r}")
    return value


def _version(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise StateValidationError(f"{name} must be a non-empty string, got {value!r}")
    return value


def _focus(name: str, data: Mapping[str, Any]) -> FocusChange:
    if name not in data:
        return UNCHANGED
    value = data[name]
    if value is not None and not isinstance(value, str):
        raise StateValidationError(f"{name} must be an element id or null, got {value!r}")
    return value
