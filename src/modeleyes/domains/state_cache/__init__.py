"""State Cache Bounded Context.

Capacity-bounded, recency-ordered stores of snapshots and elements.
"""

from modeleyes.domains.state_cache.events import CacheEntryEvicted
from modeleyes.domains.state_cache.lru import LRUCache
from modeleyes.domains.state_cache.repository import (
    DEFAULT_ELEMENT_CAPACITY,
    DEFAULT_STATE_CAPACITY,
    ElementCache,
    ElementRepository,
    StateRepository,
    UIStateCache,
)

__all__ = [
    "CacheEntryEvicted",
    "DEFAULT_ELEMENT_CAPACITY",
    "DEFAULT_STATE_CAPACITY",
    "ElementCache",
    "ElementRepository",
    "LRUCache",
    "StateRepository",
    "UIStateCache",
]
