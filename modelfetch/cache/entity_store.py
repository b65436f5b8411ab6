"""
Entity cache keyed by (type name, id).
"""
import logging
from typing import Any, Dict, Optional, Tuple

from ..models import Entity
from ..registry import TypeRegistry
from .core import CacheEntry

logger = logging.getLogger("cache.entity_store")

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


def _matches(entity: Entity, params: Dict[str, Any]) -> bool:
    """A sequence param means "contained in", a scalar means equality."""
    for key, expected in params.items():
        actual = entity.attributes.get(key)
        if isinstance(expected, _SEQUENCE_TYPES):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


class EntityStore:
    """
    Individually addressable entities, one live entry per (type, id).

    Stored entities are watched for id reassignment and re-inserted under
    their new key.
    """

    def __init__(self, registry: Optional[TypeRegistry] = None):
        self.registry = registry if registry is not None else TypeRegistry()
        self._entries: Dict[str, Dict[str, CacheEntry]] = {}

    @staticmethod
    def _key(type_name: str, entity_id: Any) -> Tuple[str, str]:
        return type_name, str(entity_id)

    def set(self, entity: Entity) -> None:
        """Store ``entity``, overwriting any prior entry. No-op without an id."""
        if entity.id is None:
            return
        type_name, entity_id = self._key(entity.type_name, entity.id)
        by_id = self._entries.setdefault(type_name, {})
        entry = by_id.get(entity_id)
        if entry is None:
            by_id[entity_id] = CacheEntry(entity)
        else:
            entry.overwrite(entity)
        if not entity.has_listener("change:id", self._on_id_change):
            entity.on("change:id", self._on_id_change)
        logger.debug(f"Stored {type_name}:{entity_id}")

    def get(self, type_name: str, entity_id: Any, exact: bool = False) -> Optional[Entity]:
        """
        Look up an entity by id.

        Args:
            type_name: Entity type
            entity_id: Id to look up (None always misses)
            exact: Return the stored instance itself rather than a detached copy

        Returns:
            The entity, or None if not cached
        """
        if entity_id is None:
            return None
        type_name, entity_id = self._key(type_name, entity_id)
        entry = self._entries.get(type_name, {}).get(entity_id)
        if entry is None:
            logger.debug(f"Entity MISS: {type_name}:{entity_id}")
            return None
        logger.debug(f"Entity HIT: {type_name}:{entity_id}")
        return entry.value if exact else entry.value.copy()

    def find(self, type_name: str, partial_params: Dict[str, Any]) -> Optional[Entity]:
        """
        Best-effort lookup of an entity by its attributes.

        The id attribute is ignored. An empty filter cannot single out an
        entity, so it returns None.
        """
        id_attribute = self.registry.id_attribute(type_name)
        params = {k: v for k, v in (partial_params or {}).items() if k != id_attribute}
        if not params:
            return None
        for entry in self._entries.get(type_name, {}).values():
            if _matches(entry.value, params):
                return entry.value
        return None

    def delete(self, type_name: str, entity_id: Any) -> bool:
        type_name, entity_id = self._key(type_name, entity_id)
        entry = self._entries.get(type_name, {}).pop(entity_id, None)
        if entry is None:
            return False
        entry.value.off("change:id", self._on_id_change)
        return True

    def clear(self) -> int:
        count = len(self)
        for by_id in self._entries.values():
            for entry in by_id.values():
                entry.value.off("change:id", self._on_id_change)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return sum(len(by_id) for by_id in self._entries.values())

    def _on_id_change(self, entity: Entity, old_id: Any) -> None:
        if old_id is not None:
            type_name, old_key = self._key(entity.type_name, old_id)
            by_id = self._entries.get(type_name, {})
            entry = by_id.get(old_key)
            if entry is not None and entry.value is entity:
                del by_id[old_key]
        logger.debug(f"Re-keying {entity.type_name}:{old_id} -> {entity.id}")
        if entity.id is None:
            entity.off("change:id", self._on_id_change)
            return
        self.set(entity)
