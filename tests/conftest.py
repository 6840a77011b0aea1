"""Pytest configuration for the ModelEyes test suite."""

from __future__ import annotations

import pytest

from modeleyes.domains.ui_state import UIState
from tests.helpers import BOX, make_element, make_state


@pytest.fixture
def state_a() -> UIState:
    """Snapshot A: a single interactable button, version "1"."""
    return make_state("1", {
        "btn": make_element("btn", "button", "Go", BOX, interactable=True),
    }, timestamp=1000.0)


@pytest.fixture
def state_b() -> UIState:
    """Snapshot B: A plus a label, button text changed, version "2"."""
    return make_state("2", {
        "btn": make_element("btn", "button", "Submit", BOX, interactable=True),
        "label": make_element("label", "label", "Name"),
    }, timestamp=1001.0)


@pytest.fixture
def state_c() -> UIState:
    """Snapshot C: B with the label removed, version "3"."""
    return make_state("3", {
        "btn": make_element("btn", "button", "Submit", BOX, interactable=True),
    }, timestamp=1002.0)


@pytest.fixture
def form_page() -> UIState:
    """A small login page with a realistic tree."""
    return make_state("form-1", {
        "root": make_element(
            "root", "body", bounds={"x": 0, "y": 0, "width": 1280, "height": 720},
            children=["header", "form", "footer", "tracker"],
        ),
        "header": make_element(
            "header", "h1", "Sign in", {"x": 0, "y": 0, "width": 1280, "height": 60},
            parent="root",
        ),
        "form": make_element(
            "form", "form", bounds={"x": 100, "y": 80, "width": 400, "height": 300},
            parent="root", children=["wrapper", "submit"],
        ),
        "wrapper": make_element(
            "wrapper", "div", bounds={"x": 100, "y": 80, "width": 400, "height": 100},
            parent="form", children=["email"],
        ),
        "email": make_element(
            "email", "input", bounds={"x": 110, "y": 90, "width": 300.4, "height": 30.5},
            parent="wrapper", interactable=True,
            attributes={"name": "email", "placeholder": "you@example.test"},
        ),
        "submit": make_element(
            "submit", "button", "Continue", {"x": 110, "y": 200, "width": 120, "height": 40},
            parent="form", interactable=True, styles={"color": "white"},
        ),
        "footer": make_element(
            "footer", "p", "Terms and conditions apply",
            {"x": 0, "y": 680, "width": 1280, "height": 40}, parent="root",
        ),
        "tracker": make_element(
            "tracker", "script", bounds={"x": 0, "y": 0, "width": 1, "height": 1},
            parent="root", visible=False,
        ),
    }, focus="email")
