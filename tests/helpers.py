"""Builders for wire-shaped snapshots used across the test suite."""

from __future__ import annotations

from typing import Any, Dict, Optional

from modeleyes.domains.ui_state import UIState

def make_element(
    element_id: str,
    element_type: str,
    text: Optional[str] = None,
    bounds: Optional[Dict[str, float]] = None,
    **fields: Any,
) -> Dict[str, Any]:
    """Build a wire-shaped element dict."""
    element: Dict[str, Any] = {"id": element_id, "type": element_type}
    if text is not None:
        element["text"] = text
    if bounds is not None:
        element["bounds"] = bounds
    element.update(fields)
    return element


def make_state_payload(
    version: str,
    elements: Dict[str, Dict[str, Any]],
    timestamp: float = 1000.0,
    **fields: Any,
) -> Dict[str, Any]:
    """Build a wire-shaped snapshot dict around ``elements``."""
    payload: Dict[str, Any] = {
        "timestamp": timestamp,
        "platform": "web",
        "application": "test-app",
        "title": "Test Page",
        "url": "https://example.test/",
        "viewport": {"width": 1280, "height": 720},
        "elements": elements,
        "version": version,
    }
    payload.update(fields)
    return payload


def make_state(
    version: str,
    elements: Dict[str, Dict[str, Any]],
    timestamp: float = 1000.0,
    **fields: Any,
) -> UIState:
    return UIState.from_dict(make_state_payload(version, elements, timestamp, **fields))


BOX = {"x": 0, "y": 0, "width": 10, "height": 10}
