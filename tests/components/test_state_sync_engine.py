"""
Tests for StateSyncEngine.

Tests cover:
- Seeding and applying differential updates
- Version mismatch handling
- Ingesting full snapshots and notifying subscribers
- prepare_context options and token usage statistics
- Cache wiring and disposal
"""

import threading

import pytest

from modeleyes.adapters import StaticExtractor
from modeleyes.components import ContextOptions, StateSyncEngine
from modeleyes.domains.context_compaction import BudgetUnit, ContextCompacted
from modeleyes.domains.state_cache import ElementCache, UIStateCache
from modeleyes.domains.shared import (
    NoCurrentStateError,
    StateValidationError,
    VersionMismatchError,
)
from modeleyes.domains.ui_state import (
    DifferentialUpdate,
    StateCaptured,
    StateDiffComputed,
    UIState,
    compute_diff,
)
from modeleyes.models import EngineConfig
from tests.helpers import make_state, make_state_payload


@pytest.fixture
def engine() -> StateSyncEngine:
    return StateSyncEngine()


@pytest.fixture
def seeded(engine, state_a) -> StateSyncEngine:
    engine.process_initial_state(state_a)
    return engine


# =============================================================================
# Construction
# =============================================================================

class TestConstruction:

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError, match="STATE_CACHE_SIZE"):
            StateSyncEngine(EngineConfig(STATE_CACHE_SIZE=-1))

    def test_empty_engine(self, engine):
        assert engine.current_state is None
        assert engine.current_version is None
        assert engine.get_most_recent_state() is None
        assert engine.get_token_usage_stats() == {"average": 0, "max": 0, "count": 0}

    def test_injected_empty_caches_are_used(self, state_a):
        state_cache = UIStateCache(capacity=3)
        element_cache = ElementCache(capacity=5)
        engine = StateSyncEngine(state_cache=state_cache, element_cache=element_cache)

        assert engine.state_cache is state_cache
        assert engine.element_cache is element_cache
        engine.process_initial_state(state_a)
        assert state_cache.get_state_by_version("1") == state_a
        assert element_cache.has_element("btn")


# =============================================================================
# Seeding and updates
# =============================================================================

class TestStateProcessing:
    """Tests for process_initial_state and process_state_update."""

    def test_initial_state_becomes_current(self, engine, state_a):
        result = engine.process_initial_state(state_a)

        assert result == state_a
        assert engine.current_version == "1"
        assert engine.get_state_by_version("1") == state_a
        assert engine.get_element("btn").text == "Go"

    def test_initial_state_validated(self, engine):
        engine.process_initial_state(make_state("1", {}))
        bad = UIState.from_dict(make_state_payload("2", {}, focus="ghost"), validate=False)
        with pytest.raises(StateValidationError):
            engine.process_initial_state(bad)
        assert engine.current_version == "1"

    def test_update_applied(self, seeded, state_a, state_b):
        result = seeded.process_state_update(compute_diff(state_a, state_b))

        assert result == state_b
        assert seeded.current_version == "2"
        assert seeded.get_state_by_version("1") == state_a
        assert seeded.get_element("label").text == "Name"
        assert seeded.get_element("btn").text == "Submit"

    def test_update_chain(self, seeded, state_a, state_b, state_c):
        seeded.process_state_update(compute_diff(state_a, state_b))
        result = seeded.process_state_update(compute_diff(state_b, state_c))
        assert result == state_c

    def test_update_from_wire_dict(self, seeded, state_a, state_b):
        wire = compute_diff(state_a, state_b).to_dict()
        result = seeded.process_state_update(DifferentialUpdate.from_dict(wire))
        assert result == state_b

    def test_version_mismatch(self, seeded, state_b, state_c):
        with pytest.raises(VersionMismatchError) as exc_info:
            seeded.process_state_update(compute_diff(state_b, state_c))

        assert exc_info.value.expected_version == "2"
        assert exc_info.value.actual_version == "1"
        assert seeded.current_version == "1"

    def test_update_without_current_state(self, engine, state_a, state_b):
        with pytest.raises(VersionMismatchError) as exc_info:
            engine.process_state_update(compute_diff(state_a, state_b))
        assert exc_info.value.actual_version is None

    def test_invalid_patch_leaves_state_untouched(self, seeded):
        update = DifferentialUpdate(
            timestamp=5.0, base_version="1", version="2",
            modified={"ghost": {"text": "boo"}},
        )
        with pytest.raises(StateValidationError):
            seeded.process_state_update(update)
        assert seeded.current_version == "1"

    def test_removed_elements_leave_element_cache(self, engine, state_b, state_c):
        engine.process_initial_state(state_b)
        engine.process_state_update(compute_diff(state_b, state_c))
        assert engine.get_element("label") is None
        assert engine.get_element("btn") is not None

    def test_state_cache_capacity_from_config(self, state_a, state_b):
        engine = StateSyncEngine(EngineConfig(STATE_CACHE_SIZE=1))
        engine.process_initial_state(state_a)
        engine.process_state_update(compute_diff(state_a, state_b))

        assert engine.get_state_by_version("1") is None
        assert engine.get_most_recent_state() == state_b


# =============================================================================
# Ingestion and subscribers
# =============================================================================

class TestIngestion:
    """Tests for ingest_state, capture and subscribe."""

    def test_first_ingest_seeds(self, engine, state_a):
        assert engine.ingest_state(state_a) is None
        assert engine.current_version == "1"

    def test_ingest_returns_patch_and_notifies(self, engine, state_a, state_b):
        received = []
        engine.subscribe(received.append)
        engine.ingest_state(state_a)

        update = engine.ingest_state(state_b)

        assert update == compute_diff(state_a, state_b)
        assert received == [update]
        assert engine.current_version == "2"

    def test_empty_patch_not_broadcast(self, engine, state_a):
        received = []
        engine.subscribe(received.append)
        engine.ingest_state(state_a)

        update = engine.ingest_state(state_a)

        assert update.is_empty
        assert received == []

    def test_unsubscribe(self, engine, state_a, state_b):
        received = []
        unsubscribe = engine.subscribe(received.append)
        unsubscribe()
        unsubscribe()
        engine.ingest_state(state_a)
        engine.ingest_state(state_b)
        assert received == []

    def test_failing_subscriber_isolated(self, engine, state_a, state_b):
        received = []

        def explode(_update):
            raise RuntimeError("boom")

        engine.subscribe(explode)
        engine.subscribe(received.append)
        engine.ingest_state(state_a)
        engine.ingest_state(state_b)

        assert len(received) == 1

    def test_capture_from_extractor(self, engine, state_a, state_b):
        extractor = StaticExtractor([state_a, state_b.to_dict()])

        assert engine.capture(extractor) is None
        update = engine.capture(extractor)
        assert update.base_version == "1"
        assert update.version == "2"
        assert engine.capture(extractor).is_empty
        assert extractor.remaining == 0

    def test_compute_diff_does_not_touch_caches(self, engine, state_a, state_b):
        update = engine.compute_diff(state_a, state_b)
        assert update.version == "2"
        assert engine.current_state is None
        assert engine.get_state_by_version("1") is None


# =============================================================================
# Context preparation
# =============================================================================

class TestPrepareContext:
    """Tests for prepare_context and token usage statistics."""

    def test_without_state(self, engine):
        with pytest.raises(NoCurrentStateError):
            engine.prepare_context()
        with pytest.raises(LookupError):
            engine.prepare_context(100)

    def test_default_budget_from_config(self, form_page):
        engine = StateSyncEngine(EngineConfig(MAX_TOKENS=5000))
        engine.process_initial_state(form_page)

        context = engine.prepare_context()

        assert context.budget == 5000
        assert context.unit == BudgetUnit.TOKENS
        assert context.estimated_cost <= 5000

    def test_explicit_budget(self, engine, form_page):
        engine.process_initial_state(form_page)
        context = engine.prepare_context(120)
        assert context.budget == 120
        assert context.estimated_cost <= 120

    def test_dict_options(self, engine, form_page):
        engine.process_initial_state(form_page)

        context = engine.prepare_context(100_000, {
            "budgetUnit": "bytes",
            "includeFullElementDetails": False,
            "maxElements": 3,
        })

        assert context.unit == BudgetUnit.BYTES
        assert context.included_ids == ["header", "email", "submit"]
        assert "attributes" not in context.state["elements"]["email"]

    def test_include_invisible_option(self, engine):
        state = make_state("1", {
            "ghost": {"id": "ghost", "type": "p", "text": "hidden",
                      "bounds": {"x": 0, "y": 0, "width": 5, "height": 5}, "visible": False},
        })
        engine.process_initial_state(state)

        assert engine.prepare_context(1000).included_ids == []
        options = ContextOptions(include_invisible=True)
        assert engine.prepare_context(1000, options).included_ids == ["ghost"]

    def test_preset_option_keeps_configured_budget(self, engine, form_page):
        engine.process_initial_state(form_page)
        context = engine.prepare_context(options={"preset": "compact"})
        assert context.budget == 4000
        assert "attributes" not in context.state["elements"]["email"]

    def test_unknown_preset(self, seeded):
        with pytest.raises(ValueError):
            seeded.prepare_context(options={"preset": "tiny"})

    def test_token_usage_stats(self, seeded):
        first = seeded.prepare_context(1000).estimated_cost
        second = seeded.prepare_context(1000).estimated_cost

        stats = seeded.get_token_usage_stats()

        assert stats["count"] == 2
        assert stats["max"] == max(first, second)
        assert stats["average"] == (first + second) / 2

    def test_token_history_is_bounded(self, state_a):
        engine = StateSyncEngine(EngineConfig(TOKEN_HISTORY_SIZE=2))
        engine.process_initial_state(state_a)
        for _ in range(5):
            engine.prepare_context(1000)
        assert engine.get_token_usage_stats()["count"] == 2

    def test_concurrent_prepare_context(self, seeded):
        errors = []

        def worker():
            try:
                for _ in range(20):
                    seeded.prepare_context(1000)
            except Exception as e:  # pragma: no cover - surfaced by the assert below
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert seeded.get_token_usage_stats()["count"] == 80


class TestContextOptions:

    def test_from_dict_accepts_both_spellings(self):
        snake = ContextOptions.from_dict({"include_invisible": True, "unit": "bytes", "max_elements": 4})
        camel = ContextOptions.from_dict({"includeInvisible": True, "budgetUnit": "bytes", "maxElements": 4})
        assert snake == camel
        assert snake.unit == BudgetUnit.BYTES

    def test_from_dict_rejects_unknown_unit(self):
        with pytest.raises(ValueError):
            ContextOptions.from_dict({"unit": "words"})


# =============================================================================
# Events and disposal
# =============================================================================

class TestLifecycle:

    def test_events_published(self, state_a, state_b):
        events = []
        engine = StateSyncEngine(event_publisher=events.append)

        engine.ingest_state(state_a)
        engine.ingest_state(state_b)
        engine.prepare_context(1000)

        kinds = [type(event) for event in events]
        assert kinds.count(StateCaptured) == 2
        assert StateDiffComputed in kinds
        assert kinds[-1] is ContextCompacted

    def test_dispose(self, seeded, state_b):
        received = []
        seeded.subscribe(received.append)
        seeded.prepare_context(1000)

        seeded.dispose()

        assert seeded.current_state is None
        assert seeded.get_state_by_version("1") is None
        assert seeded.get_element("btn") is None
        assert seeded.get_token_usage_stats()["count"] == 0
        seeded.ingest_state(state_b)
        assert received == []
