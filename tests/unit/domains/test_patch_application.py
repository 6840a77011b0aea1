"""
Tests for applying differential updates.

Tests cover:
- Version checking
- Field merge, add and remove semantics
- Focus/hover carry-over and clearing
- Round-trip: apply(old, diff(old, new)) == new
"""

import pytest

from modeleyes.domains.shared import Bounds, StateValidationError, VersionMismatchError
from modeleyes.domains.ui_state import (
    DifferentialUpdate,
    StateUpdateApplied,
    StateUpdateService,
    UIElement,
    UIState,
    apply_update,
    compute_diff,
)
from tests.helpers import BOX, make_element, make_state


class TestStateUpdateService:
    """Tests for StateUpdateService.apply."""

    @pytest.fixture
    def update_service(self) -> StateUpdateService:
        return StateUpdateService()

    def test_version_mismatch(self, update_service, state_a):
        update = DifferentialUpdate(timestamp=2.0, base_version="other", version="2")
        with pytest.raises(VersionMismatchError) as exc_info:
            update_service.apply(state_a, update)
        assert exc_info.value.expected_version == "other"
        assert exc_info.value.actual_version == "1"

    def test_modified_fields_merged(self, update_service, state_a):
        update = DifferentialUpdate(
            timestamp=2.0, base_version="1", version="2",
            modified={"btn": {"text": "Submit"}},
        )
        result = update_service.apply(state_a, update)

        btn = result.elements["btn"]
        assert btn.text == "Submit"
        assert btn.bounds == Bounds(0, 0, 10, 10)
        assert btn.interactable is True

    def test_version_and_timestamp_from_patch(self, update_service, state_a):
        update = DifferentialUpdate(timestamp=99.0, base_version="1", version="2")
        result = update_service.apply(state_a, update)
        assert result.version == "2"
        assert result.timestamp == 99.0
        assert result.title == state_a.title

    def test_added_and_removed(self, update_service, state_b):
        update = DifferentialUpdate(
            timestamp=2.0, base_version="2", version="3",
            added={"link": UIElement(id="link", type="a", text="Help")},
            removed=("label",),
        )
        result = update_service.apply(state_b, update)
        assert sorted(result.elements) == ["btn", "link"]

    def test_remove_unknown_id_is_ignored(self, update_service, state_a):
        update = DifferentialUpdate(timestamp=2.0, base_version="1", version="2", removed=("ghost",))
        result = update_service.apply(state_a, update)
        assert result.elements == state_a.elements

    def test_modifying_missing_element_fails_closed(self, update_service, state_a):
        update = DifferentialUpdate(
            timestamp=2.0, base_version="1", version="2",
            modified={"ghost": {"text": "boo"}},
        )
        with pytest.raises(StateValidationError):
            update_service.apply(state_a, update)

    def test_base_not_mutated(self, update_service, state_a):
        before = state_a.to_dict()
        update = DifferentialUpdate(
            timestamp=2.0, base_version="1", version="2",
            modified={"btn": {"text": "Submit"}},
            removed=("btn",),
        )
        update_service.apply(state_a, update)
        assert state_a.to_dict() == before

    def test_shared_elements_cannot_be_mutated_through_result(self, update_service):
        base = make_state("1", {
            "x": make_element("x", "input", bounds=BOX, attributes={"k": "v"}, styles={"color": "red"}),
            "y": make_element("y", "p", "text"),
        })
        update = DifferentialUpdate(
            timestamp=2.0, base_version="1", version="2",
            modified={"y": {"text": "changed"}},
        )
        result = update_service.apply(base, update)
        assert result.elements["x"] is base.elements["x"]

        with pytest.raises(TypeError):
            result.elements["x"].attributes["k"] = "mutated"  # type: ignore[index]
        with pytest.raises(TypeError):
            result.elements["x"].styles["color"] = "blue"  # type: ignore[index]

        assert base.elements["x"].attributes == {"k": "v"}
        assert base.elements["x"].styles == {"color": "red"}

    def test_focus_carried_over_when_unchanged(self, update_service):
        base = make_state("1", {"a": make_element("a", "input", bounds=BOX)}, focus="a", hover="a")
        result = update_service.apply(base, DifferentialUpdate(timestamp=2.0, base_version="1", version="2"))
        assert result.focus == "a"
        assert result.hover == "a"

    def test_explicit_null_clears_focus(self, update_service):
        base = make_state("1", {"a": make_element("a", "input", bounds=BOX)}, focus="a", hover="a")
        update = DifferentialUpdate.from_dict({
            "timestamp": 2.0, "baseVersion": "1", "version": "2", "focus": None,
        })
        result = update_service.apply(base, update)
        assert result.focus is None
        assert result.hover == "a"

    def test_event_published(self, state_a):
        events = []
        service = StateUpdateService(event_publisher=events.append)
        service.apply(state_a, DifferentialUpdate(timestamp=2.0, base_version="1", version="2"))
        assert isinstance(events[0], StateUpdateApplied)
        assert events[0].version == "2"


class TestRoundTrip:
    """apply(old, diff(old, new)) must reproduce new."""

    def test_scenario_chain(self, state_a, state_b, state_c):
        assert apply_update(state_a, compute_diff(state_a, state_b)) == state_b
        assert apply_update(state_b, compute_diff(state_b, state_c)) == state_c
        assert apply_update(state_a, compute_diff(state_a, state_c)) == state_c

    def test_reverse_direction(self, state_a, state_b):
        assert apply_update(state_b, compute_diff(state_b, state_a)) == state_a

    def test_no_op(self, form_page):
        assert apply_update(form_page, compute_diff(form_page, form_page)) == form_page

    def test_restructured_tree(self, form_page: UIState):
        payload = form_page.to_dict()
        elements = payload["elements"]
        # Move the email field out of the wrapper and drop the wrapper
        del elements["wrapper"]
        elements["form"]["children"] = ["email", "submit", "hint"]
        elements["email"]["parent"] = "form"
        elements["email"]["attributes"] = {"name": "email"}
        elements["submit"]["styles"] = {"color": "grey"}
        elements["submit"]["interactable"] = False
        elements["hint"] = make_element("hint", "span", "Required", BOX, parent="form", visible=False)
        payload.update(version="form-2", timestamp=2000.0, focus=None, hover="submit")
        new = UIState.from_dict(payload)

        rebuilt = apply_update(form_page, compute_diff(form_page, new))

        assert rebuilt == new
        assert rebuilt.to_dict() == new.to_dict()

    def test_round_trip_through_wire_format(self, form_page: UIState):
        payload = form_page.to_dict()
        payload["elements"]["footer"]["text"] = "Updated terms"
        payload["elements"]["email"]["bounds"] = {"x": 110, "y": 95, "width": 300, "height": 30}
        payload["version"] = "form-2"
        new = UIState.from_dict(payload)

        wire = compute_diff(form_page, new).to_dict()
        rebuilt = apply_update(form_page, DifferentialUpdate.from_dict(wire))

        assert rebuilt == new
