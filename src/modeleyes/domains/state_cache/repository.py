"""
Repositories for the State Cache bounded context.

Two capacity-bounded stores built on :class:`LRUCache`:

- UIStateCache keeps whole snapshots, served by version
- ElementCache keeps individual elements, served by id

Both are in-memory and guarded by locks; they are the only shared
mutable state of the engine.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Tuple, Union, runtime_checkable

from modeleyes.domains.state_cache.events import CacheEntryEvicted
from modeleyes.domains.state_cache.lru import LRUCache
from modeleyes.domains.ui_state.aggregates import UIState
from modeleyes.domains.ui_state.entities import UIElement
from modeleyes.domains.ui_state.patch_service import StateUpdateService
from modeleyes.domains.ui_state.value_objects import DifferentialUpdate

logger = logging.getLogger(__name__)

StateKey = Tuple[float, str]
"""Composite snapshot key: (timestamp, version)."""

DEFAULT_STATE_CAPACITY = 10
DEFAULT_ELEMENT_CAPACITY = 1000


@runtime_checkable
class StateRepository(Protocol):
    """
    Repository interface for UIState snapshots.

    Implementations may bound their size; a lookup for an evicted or
    unknown version returns None rather than raising.
    """

    def add_state(self, state: UIState) -> None:
        """Store a snapshot under its version."""
        ...

    def get_state_by_version(self, version: str) -> Optional[UIState]:
        """Return the snapshot with this version, None if not resident."""
        ...

    def get_most_recent_state(self) -> Optional[UIState]:
        """Return the resident snapshot with the largest timestamp."""
        ...

    def apply_update(self, base_version: str, update: DifferentialUpdate) -> Optional[UIState]:
        """Apply a patch to a resident snapshot and store the result."""
        ...

    def clear(self) -> None:
        ...


@runtime_checkable
class ElementRepository(Protocol):
    """Repository interface for elements looked up by id."""

    def add_element(self, element: UIElement) -> None:
        ...

    def add_elements(self, elements: Union[UIState, Mapping[str, UIElement]]) -> None:
        """Store every element of a snapshot or mapping."""
        ...

    def get_element_by_id(self, element_id: str) -> Optional[UIElement]:
        """Return the last stored version of an element, None if not resident."""
        ...

    def has_element(self, element_id: str) -> bool:
        ...

    def remove_element(self, element_id: str) -> bool:
        """Drop an element; True if it was resident."""
        ...

    def clear(self) -> None:
        ...


class UIStateCache:
    """
    LRU store of snapshots keyed by (timestamp, version).

    A secondary version index resolves versions to keys. It is kept in
    step with the LRU: evicted or replaced entries leave the index.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_STATE_CAPACITY,
        update_service: Optional[StateUpdateService] = None,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        """
        Initialize the snapshot cache.

        Args:
            capacity: Maximum snapshots to keep
            update_service: Service used by apply_update
            event_publisher: Receives CacheEntryEvicted events
        """
        self._states: LRUCache[StateKey, UIState] = LRUCache(capacity, on_evict=self._on_evict)
        self._version_index: Dict[str, StateKey] = {}
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()
        self._update_service = update_service or StateUpdateService()
        self._event_publisher = event_publisher
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._states.capacity

    def add_state(self, state: UIState) -> None:
        """
        Add a snapshot to the cache.

        Re-adding a version replaces the previous entry for it.

        Args:
            state: Snapshot to cache
        """
        key = self._state_key(state.timestamp, state.version)
        with self._lock:
            previous_key = self._version_index.get(state.version)
            if previous_key is not None and previous_key != key:
                self._states.delete(previous_key)
            self._states.set(key, state)
            if self._states.has(key):
                self._version_index[state.version] = key
                self._sequence[state.version] = next(self._counter)
            else:
                self._version_index.pop(state.version, None)
                self._sequence.pop(state.version, None)

    def get_state_by_version(self, version: str) -> Optional[UIState]:
        """
        Get a snapshot by version.

        Args:
            version: Version to look up

        Returns:
            The snapshot, or None if the version is not resident
        """
        with self._lock:
            key = self._version_index.get(version)
            if key is None:
                logger.debug(f"State cache miss for version {version}")
                return None
            return self._states.get(key)

    def get_most_recent_state(self) -> Optional[UIState]:
        """
        Get the resident snapshot with the largest timestamp.

        Ties go to the snapshot added last.

        Returns:
            Most recent snapshot, or None if the cache is empty
        """
        with self._lock:
            if not self._version_index:
                return None
            version = max(
                self._version_index,
                key=lambda v: (self._version_index[v][0], self._sequence[v]),
            )
            return self.get_state_by_version(version)

    def apply_update(self, base_version: str, update: DifferentialUpdate) -> Optional[UIState]:
        """
        Apply a differential update to a cached snapshot.

        Args:
            base_version: Version of the cached snapshot to patch
            update: Differential update to apply

        Returns:
            The new snapshot (also cached), or None when ``base_version``
            is not resident and a full snapshot has to be fetched instead

        Raises:
            VersionMismatchError: If ``update.base_version`` differs from ``base_version``
        """
        with self._lock:
            base = self.get_state_by_version(base_version)
            if base is None:
                logger.debug(
                    f"Cannot apply update {update.version}: base version {base_version} not cached"
                )
                return None
            new_state = self._update_service.apply(base, update)
            self.add_state(new_state)
            return new_state

    def has_version(self, version: str) -> bool:
        """Check residency without touching recency."""
        with self._lock:
            return version in self._version_index

    def versions(self) -> List[str]:
        """Resident versions, least recently used first."""
        with self._lock:
            return [version for _, version in self._states.keys()]

    def clear(self) -> None:
        """Clear the cache."""
        with self._lock:
            self._states.clear()
            self._version_index.clear()
            self._sequence.clear()

    def size(self) -> int:
        """Get the number of snapshots in the cache."""
        return self._states.size()

    def __len__(self) -> int:
        return self.size()

    def _on_evict(self, key: StateKey, state: UIState) -> None:
        _, version = key
        if self._version_index.get(version) == key:
            del self._version_index[version]
            self._sequence.pop(version, None)
        logger.debug(f"Evicted state version {version} from state cache")
        self._publish(CacheEntryEvicted(cache_name="state", key=version, capacity=self.capacity))

    @staticmethod
    def _state_key(timestamp: float, version: str) -> StateKey:
        return (timestamp, version)

    def _publish(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")


class ElementCache:
    """
    LRU store of individual elements keyed by id.

    Answers "does this element still exist / what were its last known
    properties" without retaining whole snapshots.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_ELEMENT_CAPACITY,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._elements: LRUCache[str, UIElement] = LRUCache(capacity, on_evict=self._on_evict)
        self._event_publisher = event_publisher

    @property
    def capacity(self) -> int:
        return self._elements.capacity

    def add_element(self, element: UIElement) -> None:
        """Add an element to the cache."""
        self._elements.set(element.id, element)

    def add_elements(self, elements: Union[UIState, Mapping[str, UIElement]]) -> None:
        """
        Add every element of a snapshot (or an id -> element mapping).

        Elements are inserted in canonical traversal order when a
        snapshot is given, so eviction pressure falls on the tail.
        """
        if isinstance(elements, UIState):
            for element in elements.iter_elements():
                self.add_element(element)
            return
        for element in elements.values():
            self.add_element(element)

    def get_element_by_id(self, element_id: str) -> Optional[UIElement]:
        """
        Get an element by id.

        Returns:
            The last known element, or None if not resident
        """
        return self._elements.get(element_id)

    def has_element(self, element_id: str) -> bool:
        return self._elements.has(element_id)

    def remove_element(self, element_id: str) -> bool:
        """
        Remove an element from the cache.

        Returns:
            Whether the element was removed
        """
        return self._elements.delete(element_id)

    def clear(self) -> None:
        """Clear the cache."""
        self._elements.clear()

    def size(self) -> int:
        """Get the number of elements in the cache."""
        return self._elements.size()

    def __len__(self) -> int:
        return self.size()

    def _on_evict(self, element_id: str, element: UIElement) -> None:
        logger.debug(f"Evicted element {element_id} from element cache")
        if self._event_publisher:
            try:
                self._event_publisher(
                    CacheEntryEvicted(cache_name="element", key=element_id, capacity=self.capacity)
                )
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")
