"""UI State Extractor Protocol - Anti-Corruption Layer.

Platform-specific extractors (DOM traversal, desktop accessibility trees)
live outside the engine. This module defines the boundary they implement
and a replaying extractor for tests and offline sessions.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from typing import Any, Callable, Iterable, List, Mapping, Optional, Protocol, Union, runtime_checkable

from modeleyes.domains.ui_state.aggregates import UIState

logger = logging.getLogger(__name__)

SnapshotSource = Union[UIState, Mapping[str, Any]]


@runtime_checkable
class UIStateExtractor(Protocol):
    """Produces a full snapshot of a user interface on demand."""

    def capture_state(self) -> UIState:
        """Capture the current UI state."""
        ...


class VersionGenerator:
    """Monotonically advancing version identifiers.

    Versions look like ``"<millis>-<sequence>"``. The sequence number
    disambiguates captures within the same millisecond, so two calls never
    return the same value. Versions are still opaque to the engine.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.time
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_version(self) -> str:
        with self._lock:
            millis = int(self._clock() * 1000)
            return f"{millis}-{next(self._counter)}"


class StaticExtractor:
    """Replays a fixed sequence of snapshots.

    Each :meth:`capture_state` call returns the next snapshot; once the
    sequence is exhausted the last one is returned again, as a UI that
    stopped changing would be.

    Usage:
        extractor = StaticExtractor([first_payload, second_payload])
        engine.capture(extractor)  # seeds the engine
        engine.capture(extractor)  # returns the patch between the two
    """

    def __init__(self, snapshots: Iterable[SnapshotSource]) -> None:
        self._snapshots: List[UIState] = [self._to_state(s) for s in snapshots]
        if not self._snapshots:
            raise ValueError("StaticExtractor needs at least one snapshot")
        self._position = 0

    @property
    def remaining(self) -> int:
        return len(self._snapshots) - self._position

    def capture_state(self) -> UIState:
        index = min(self._position, len(self._snapshots) - 1)
        if self._position < len(self._snapshots):
            self._position += 1
        state = self._snapshots[index]
        logger.debug(f"Replaying snapshot {index} (version {state.version})")
        return state

    def reset(self) -> None:
        self._position = 0

    @staticmethod
    def _to_state(source: SnapshotSource) -> UIState:
        if isinstance(source, UIState):
            return source
        return UIState.from_dict(source)
