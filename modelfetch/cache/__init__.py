"""
In-memory caches for entities and collections, with freshness throttling
and request coalescing.
"""
from .core import CacheEntry
from .entity_store import EntityStore
from .collection_store import CollectionStore
from .freshness import (
    CHECK_FRESH_INTERVAL_MS,
    FreshnessThrottle,
    get_freshness_throttle,
)
from .coalescer import RequestCoalescer

__all__ = [
    # Core types
    "CacheEntry",
    # Stores
    "EntityStore",
    "CollectionStore",
    # Freshness
    "CHECK_FRESH_INTERVAL_MS",
    "FreshnessThrottle",
    "get_freshness_throttle",
    # Coalescing
    "RequestCoalescer",
]
