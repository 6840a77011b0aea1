"""Domain Events for the State Cache Context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


@dataclass
class CacheEntryEvicted:
    """Emitted when an entry is pushed out of a cache for capacity.

    ``cache_name`` is ``"state"`` or ``"element"``; ``key`` is the
    snapshot version or the element id respectively.
    """
    cache_name: str
    key: str
    capacity: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_type(self) -> str:
        return "state_cache.entry_evicted"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "cache_name": self.cache_name,
            "key": self.key,
            "capacity": self.capacity,
            "timestamp": self.timestamp.isoformat(),
        }
