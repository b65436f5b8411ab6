"""
Core cache data structures.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class CacheEntry:
    """
    Wraps a cached entity or collection with the time it was last written.

    There is no TTL: staleness is decided by the caller (``check_fresh``).
    """
    value: Any
    written_at: datetime = field(default_factory=datetime.utcnow)

    def overwrite(self, value: Any) -> None:
        """Replace the value in place and bump the write marker."""
        self.value = value
        self.written_at = datetime.utcnow()
