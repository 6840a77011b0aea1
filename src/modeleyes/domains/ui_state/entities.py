"""UI State domain entities - UIElement."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from modeleyes.domains.shared.kernel import (
    Bounds,
    Scalar,
    StateValidationError,
    coerce_scalar_map,
)

# Element fields a patch is allowed to change. ``id`` is the identity and
# never appears in a delta.
MUTABLE_FIELDS: Tuple[str, ...] = (
    "type",
    "text",
    "attributes",
    "bounds",
    "interactable",
    "visible",
    "children",
    "parent",
    "styles",
)


@dataclass(frozen=True)
class UIElement:
    """A node in the captured UI tree.

    ``children`` holds element ids in traversal order. ``parent`` is a
    lookup hint only; ownership of elements belongs to the snapshot's
    ``elements`` mapping.
    """

    id: str
    """Identifier, unique within a snapshot and stable across snapshots."""

    type: str
    """Tag or control category (``button``, ``div``, ``Edit``...)."""

    text: Optional[str] = None
    """Text content, if any."""

    attributes: Mapping[str, Scalar] = field(default_factory=dict)
    """Element attributes, read-only; key order carries no meaning."""

    bounds: Bounds = field(default_factory=Bounds)
    """Position and size."""

    interactable: bool = False
    """Whether the element accepts user interaction."""

    visible: bool = True
    """Whether the element is currently shown."""

    children: Tuple[str, ...] = ()
    """Child element ids in document order."""

    parent: Optional[str] = None
    """Id of the parent element."""

    styles: Mapping[str, Scalar] = field(default_factory=dict)
    """Rendered style values, read-only."""

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise StateValidationError(f"Element id must be a non-empty string, got {self.id!r}")
        if not isinstance(self.type, str) or not self.type:
            raise StateValidationError(f"Element {self.id!r} is missing a type")
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))
        # Snapshots share element objects; their maps are frozen copies.
        for map_field in ("attributes", "styles"):
            object.__setattr__(
                self, map_field, MappingProxyType(dict(getattr(self, map_field) or {}))
            )

    @property
    def is_renderable(self) -> bool:
        """Check if the element occupies any screen area."""
        return self.bounds.is_renderable

    @property
    def has_text(self) -> bool:
        """Check if the element carries non-blank text."""
        return bool(self.text and self.text.strip())

    def field_value(self, name: str) -> Any:
        """Get a field by its wire name."""
        return getattr(self, name)

    def with_changes(self, changes: Mapping[str, Any]) -> "UIElement":
        """Return a copy with the given fields replaced.

        Fields absent from ``changes`` are retained. ``attributes`` and
        ``styles`` are replaced as whole maps.

        Raises:
            StateValidationError: If a change names an unknown field
        """
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise StateValidationError(
                f"Cannot change fields {sorted(unknown)} of element {self.id!r}"
            )
        values = dict(changes)
        if "children" in values:
            values["children"] = tuple(values["children"] or ())
        return replace(self, **values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire representation.

        Every field is present; compaction strips defaults separately.
        """
        return {
            "id": self.id,
            "type": self.type,
            "text": self.text,
            "attributes": dict(self.attributes),
            "bounds": self.bounds.to_dict(),
            "interactable": self.interactable,
            "visible": self.visible,
            "children": list(self.children),
            "parent": self.parent,
            "styles": dict(self.styles),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], element_id: Optional[str] = None) -> "UIElement":
        """Build an element from its wire representation.

        Args:
            data: Element object as received from an extractor or transport
            element_id: Id to use when ``data`` carries none (mapping key)

        Returns:
            Parsed UIElement

        Raises:
            StateValidationError: If required fields are missing or malformed
        """
        if not isinstance(data, Mapping):
            raise StateValidationError(f"Element must be an object, got {type(data).__name__}")
        resolved_id = data.get("id", element_id)
        if element_id is not None and resolved_id != element_id:
            raise StateValidationError(
                f"Element stored under key {element_id!r} declares id {resolved_id!r}"
            )
        if "type" not in data:
            raise StateValidationError(f"Element {resolved_id!r} is missing required field 'type'")
        return cls(
            id=resolved_id,
            type=data["type"],
            text=_optional_str("text", data.get("text")),
            attributes=coerce_scalar_map("attributes", data.get("attributes")),
            bounds=Bounds.from_dict(data.get("bounds")),
            interactable=_bool("interactable", data.get("interactable"), False),
            visible=_bool("visible", data.get("visible"), True),
            children=_id_tuple("children", data.get("children")),
            parent=_optional_str("parent", data.get("parent")),
            styles=coerce_scalar_map("styles", data.get("styles")),
        )


def parse_field_value(name: str, value: Any) -> Any:
    """Parse a single wire field value into its domain type.

    Used for the partial elements carried in ``modified``.
    """
    if name == "type":
        if not isinstance(value, str) or not value:
            raise StateValidationError(f"type must be a non-empty string, got {value!r}")
        return value
    if name in ("text", "parent"):
        return _optional_str(name, value)
    if name in ("attributes", "styles"):
        return coerce_scalar_map(name, value)
    if name == "bounds":
        return Bounds.from_dict(value)
    if name == "interactable":
        return _bool(name, value, False)
    if name == "visible":
        return _bool(name, value, True)
    if name == "children":
        return _id_tuple(name, value)
    raise StateValidationError(f"Unknown element field {name!r}")


def field_to_wire(name: str, value: Any) -> Any:
    """Inverse of :func:`parse_field_value`."""
    if name == "bounds":
        return value.to_dict()
    if name == "children":
        return list(value)
    if name in ("attributes", "styles"):
        return dict(value)
    return value


def _optional_str(name: str, value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    raise StateValidationError(f"{name} must be a string, got {type(value).__name__}")


def _bool(name: str, value: Any, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise StateValidationError(f"{name} must be a boolean, got {value!r}")
    return value


def _id_tuple(name: str, value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        raise StateValidationError(f"{name} must be a list of ids, got {value!r}")
    ids = tuple(value)
    for item in ids:
        if not isinstance(item, str):
            raise StateValidationError(f"{name} must contain string ids, got {item!r}")
    return ids
