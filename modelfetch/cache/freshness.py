"""Throttling for background freshness checks."""

import json
from time import time
from typing import Callable, Optional

from cachetools import LRUCache  # type: ignore[import-untyped]

from config.settings import settings

from ..specs import Spec

# Configuration
CHECK_FRESH_INTERVAL_MS = 10000  # At most one check per key per interval
MAX_TRACKED_KEYS = 10000  # Distinct (type, params) shapes remembered


class FreshnessThrottle:
    """
    Remembers when each (type, params) shape was last revalidated.

    Keys are shared between entity and collection specs with the same type
    name and params. The table is an LRU bounded by ``max_keys``; a key that
    falls out simply becomes eligible for a check again.
    """

    def __init__(
        self,
        interval_ms: int = CHECK_FRESH_INTERVAL_MS,
        max_keys: int = MAX_TRACKED_KEYS,
        clock: Callable[[], float] = time,
    ):
        self.interval_ms = interval_ms
        self.max_keys = max_keys
        self._clock = clock
        self._timestamps: LRUCache = LRUCache(maxsize=max_keys)

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    @staticmethod
    def checked_fresh_key(spec: Spec) -> str:
        return json.dumps(
            {"name": spec.type_name, "params": spec.params},
            sort_keys=True,
            default=str,
        )

    def should_check_fresh(self, spec: Spec) -> bool:
        timestamp = self._timestamps.get(self.checked_fresh_key(spec))
        if timestamp is None:
            return True
        return self._now_ms() - timestamp > self.interval_ms

    def did_check_fresh(self, spec: Spec) -> None:
        key = self.checked_fresh_key(spec)
        now = self._now_ms()
        previous = self._timestamps.get(key)
        # Timestamps only move forward
        self._timestamps[key] = now if previous is None else max(previous, now)

    def reset(self) -> None:
        self._timestamps.clear()

    def __len__(self) -> int:
        return len(self._timestamps)


# Process-wide throttle instance
_freshness_throttle: Optional[FreshnessThrottle] = None


def get_freshness_throttle() -> FreshnessThrottle:
    """Get the process-wide freshness throttle."""
    global _freshness_throttle
    if _freshness_throttle is None:
        _freshness_throttle = FreshnessThrottle(
            interval_ms=settings.check_fresh_interval_ms,
            max_keys=settings.freshness_max_keys,
        )
    return _freshness_throttle
