"""State Synchronization Engine for keeping a consumer's view of a UI current."""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Union

from modeleyes.adapters.extractor import UIStateExtractor
from modeleyes.domains.context_compaction import (
    BudgetUnit,
    CompactedContext,
    CompactionConfig,
    ContextCompactor,
)
from modeleyes.domains.shared.kernel import NoCurrentStateError, VersionMismatchError
from modeleyes.domains.state_cache import (
    ElementCache,
    ElementRepository,
    StateRepository,
    UIStateCache,
)
from modeleyes.domains.ui_state import (
    DifferentialUpdate,
    StateCaptured,
    StateDiffService,
    StateUpdateService,
    UIElement,
    UIState,
)
from modeleyes.models.config_models import EngineConfig

logger = logging.getLogger(__name__)

UpdateSubscriber = Callable[[DifferentialUpdate], None]


@dataclass
class ContextOptions:
    """Per-call overrides for :meth:`StateSyncEngine.prepare_context`."""
    include_full_details: Optional[bool] = None
    include_invisible: Optional[bool] = None
    unit: Optional[BudgetUnit] = None
    max_elements: Optional[int] = None
    preset: Optional[str] = None

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> 'ContextOptions':
        """Accept both snake_case and the camelCase names used on the wire."""
        def pick(*names: str) -> Any:
            for name in names:
                if options.get(name) is not None:
                    return options[name]
            return None

        unit = pick("unit", "budgetUnit")
        return cls(
            include_full_details=pick(
                "include_full_details", "includeFullDetails", "includeFullElementDetails"
            ),
            include_invisible=pick("include_invisible", "includeInvisible"),
            unit=BudgetUnit.from_string(unit) if isinstance(unit, str) else unit,
            max_elements=pick("max_elements", "maxElements"),
            preset=pick("preset"),
        )


class StateSyncEngine:
    """Owns the caches and runs diff, patch and compaction against them.

    The engine is the single entry point a transport talks to. All public
    methods serialize on one lock; diff, patch and compaction themselves
    are pure and run on immutable snapshots.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        state_cache: Optional[StateRepository] = None,
        element_cache: Optional[ElementRepository] = None,
        compactor: Optional[ContextCompactor] = None,
        event_publisher: Optional[Callable[[object], None]] = None,
    ):
        self.config = config or EngineConfig()
        errors = self.config.validate()
        if errors:
            raise ValueError(f"Invalid engine configuration: {'; '.join(errors)}")

        self._event_publisher = event_publisher
        self._diff_service = StateDiffService(event_publisher=event_publisher)
        self._update_service = StateUpdateService(event_publisher=event_publisher)
        # Explicit None checks: an empty cache is falsy.
        if state_cache is None:
            state_cache = UIStateCache(
                capacity=self.config.STATE_CACHE_SIZE,
                update_service=self._update_service,
                event_publisher=event_publisher,
            )
        if element_cache is None:
            element_cache = ElementCache(
                capacity=self.config.ELEMENT_CACHE_SIZE,
                event_publisher=event_publisher,
            )
        self.state_cache = state_cache
        self.element_cache = element_cache
        self.compactor = compactor or ContextCompactor(event_publisher=event_publisher)

        self._current_state: Optional[UIState] = None
        self._token_usage: Deque[int] = deque(maxlen=self.config.TOKEN_HISTORY_SIZE)
        self._subscribers: List[UpdateSubscriber] = []
        self._lock = threading.RLock()

    @property
    def current_state(self) -> Optional[UIState]:
        return self._current_state

    @property
    def current_version(self) -> Optional[str]:
        return self._current_state.version if self._current_state else None

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def process_initial_state(self, state: UIState) -> UIState:
        """
        Seed the engine with a full snapshot.

        Replaces whatever state was current before; earlier snapshots stay
        in the cache until evicted.

        Args:
            state: Full snapshot from an extractor or transport

        Returns:
            The seeded snapshot

        Raises:
            StateValidationError: If the snapshot is malformed
        """
        state.ensure_valid()
        with self._lock:
            self._store(state)
            logger.info(
                f"Seeded state version {state.version} "
                f"({state.element_count} elements, {state.interactable_count} interactable)"
            )
            self._publish(StateCaptured(
                version=state.version,
                element_count=state.element_count,
                interactable_count=state.interactable_count,
                application=state.application,
                title=state.title,
            ))
            return state

    def process_state_update(self, update: DifferentialUpdate) -> UIState:
        """
        Apply a differential update to the current snapshot.

        Args:
            update: Patch whose ``base_version`` must be the current version

        Returns:
            The new current snapshot

        Raises:
            VersionMismatchError: If there is no current snapshot or the
                patch was computed against a different one
            StateValidationError: If the patched snapshot is malformed
        """
        with self._lock:
            current = self._current_state
            if current is None or update.base_version != current.version:
                logger.warning(
                    f"Rejected update {update.version}: base {update.base_version} "
                    f"does not match current {self.current_version}"
                )
                raise VersionMismatchError(update.base_version, self.current_version)

            new_state = self._update_service.apply(current, update)
            new_state.ensure_valid()
            self._store(new_state, removed_ids=update.removed)
            return new_state

    def ingest_state(self, state: UIState) -> Optional[DifferentialUpdate]:
        """
        Accept a full snapshot and compute what changed.

        Args:
            state: Freshly captured snapshot

        Returns:
            The patch from the previous current snapshot, or None when
            this is the first snapshot the engine sees
        """
        state.ensure_valid()
        with self._lock:
            previous = self._current_state
            if previous is None:
                self.process_initial_state(state)
                return None

            update = self._diff_service.compute_diff(previous, state)
            self._store(state, removed_ids=update.removed)
            self._publish(StateCaptured(
                version=state.version,
                element_count=state.element_count,
                interactable_count=state.interactable_count,
                application=state.application,
                title=state.title,
            ))
            subscribers = list(self._subscribers)

        if not update.is_empty:
            self._notify(subscribers, update)
        return update

    def capture(self, extractor: UIStateExtractor) -> Optional[DifferentialUpdate]:
        """Capture a snapshot from ``extractor`` and ingest it."""
        return self.ingest_state(extractor.capture_state())

    def subscribe(self, callback: UpdateSubscriber) -> Callable[[], None]:
        """
        Register a callback for non-empty patches produced by ingestion.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def prepare_context(
        self,
        budget: Optional[int] = None,
        options: Optional[Union[ContextOptions, Mapping[str, Any]]] = None,
    ) -> CompactedContext:
        """
        Compact the current snapshot for a size-limited consumer.

        Args:
            budget: Size budget; defaults to ``MAX_TOKENS`` from the config
            options: Per-call overrides (ContextOptions or a plain dict)

        Returns:
            CompactedContext for the current snapshot

        Raises:
            NoCurrentStateError: If no snapshot has been seeded
        """
        if isinstance(options, Mapping):
            options = ContextOptions.from_dict(options)
        compaction_config = self._compaction_config(options)

        with self._lock:
            state = self._current_state
            if state is None:
                raise NoCurrentStateError("prepare_context")
            context = self.compactor.compact(state, budget=budget, config=compaction_config)
            self._token_usage.append(context.estimated_cost)
            return context

    def get_state_by_version(self, version: str) -> Optional[UIState]:
        """Snapshot for ``version`` if still cached, otherwise None."""
        with self._lock:
            return self.state_cache.get_state_by_version(version)

    def get_most_recent_state(self) -> Optional[UIState]:
        with self._lock:
            return self.state_cache.get_most_recent_state()

    def get_element(self, element_id: str) -> Optional[UIElement]:
        """Last known properties of an element, None if not cached."""
        with self._lock:
            return self.element_cache.get_element_by_id(element_id)

    def compute_diff(self, old: UIState, new: UIState) -> DifferentialUpdate:
        """Diff two snapshots without touching the engine's caches."""
        return self._diff_service.compute_diff(old, new)

    def get_token_usage_stats(self) -> Dict[str, float]:
        """Average, max and count of recent ``prepare_context`` costs."""
        with self._lock:
            usage = list(self._token_usage)
        if not usage:
            return {"average": 0, "max": 0, "count": 0}
        return {
            "average": sum(usage) / len(usage),
            "max": max(usage),
            "count": len(usage),
        }

    def dispose(self) -> None:
        """Clear caches, history and subscribers."""
        with self._lock:
            self.state_cache.clear()
            self.element_cache.clear()
            self._token_usage.clear()
            self._subscribers.clear()
            self._current_state = None
        logger.info("State sync engine disposed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _store(self, state: UIState, removed_ids: tuple = ()) -> None:
        self._current_state = state
        self.state_cache.add_state(state)
        for element_id in removed_ids:
            self.element_cache.remove_element(element_id)
        self.element_cache.add_elements(state)

    def _compaction_config(self, options: Optional[ContextOptions]) -> CompactionConfig:
        config = self.config.to_compaction_config()
        if options is None:
            return config
        if options.preset:
            preset = CompactionConfig.from_preset(options.preset)
            config = preset.with_overrides(budget=config.budget, unit=config.unit)
        return config.with_overrides(
            unit=options.unit,
            include_invisible=options.include_invisible,
            include_full_details=options.include_full_details,
            max_elements=options.max_elements,
        )

    @staticmethod
    def _notify(subscribers: List[UpdateSubscriber], update: DifferentialUpdate) -> None:
        for subscriber in subscribers:
            try:
                subscriber(update)
            except Exception as e:
                logger.error(f"Error in update subscriber: {e}")

    def _publish(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")
