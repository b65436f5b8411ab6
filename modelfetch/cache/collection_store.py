"""
Collection cache keyed by (type name, params fingerprint, relation).
"""
import logging
from typing import Any, Dict, Optional, Tuple

from ..models import Collection
from ..specs import Relation, fingerprint
from .core import CacheEntry
from .entity_store import EntityStore

logger = logging.getLogger("cache.collection_store")


class CollectionStore:
    """
    Parameterized result sets.

    Items are re-resolved against the entity store on read so a cached
    collection always hands out the latest stored version of each entity.
    Relation-scoped collections with equal params but different parents
    are separate entries.
    """

    def __init__(self, entity_store: Optional[EntityStore] = None):
        self.entity_store = entity_store if entity_store is not None else EntityStore()
        self._entries: Dict[Tuple[str, str], CacheEntry] = {}

    @staticmethod
    def _key(
        type_name: str,
        params: Optional[Dict[str, Any]],
        relation: Optional[Relation] = None,
    ) -> Tuple[str, str]:
        key = fingerprint(params)
        if relation is not None:
            key = f"{key}:{fingerprint(relation.to_dict())}"
        return type_name, key

    def set(self, collection: Collection) -> None:
        key = self._key(collection.type_name, collection.params, collection.relation)
        entry = self._entries.get(key)
        if entry is None:
            self._entries[key] = CacheEntry(collection)
        else:
            entry.overwrite(collection)
        logger.debug(f"Stored collection {key[0]} {key[1]} ({len(collection)} items)")

    async def get(
        self,
        type_name: str,
        params: Optional[Dict[str, Any]] = None,
        relation: Optional[Relation] = None,
    ) -> Optional[Collection]:
        """
        Look up a collection by type, params and relation.

        Returns:
            The cached collection, or None
        """
        key = self._key(type_name, params, relation)
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Collection MISS: {key[0]} {key[1]}")
            return None

        collection: Collection = entry.value
        items = []
        for item in collection.items:
            stored = self.entity_store.get(item.type_name, item.id, exact=True)
            items.append(stored if stored is not None else item)
        collection.items = items
        logger.debug(f"Collection HIT: {key[0]} {key[1]}")
        return collection

    def delete(
        self,
        type_name: str,
        params: Optional[Dict[str, Any]] = None,
        relation: Optional[Relation] = None,
    ) -> bool:
        return self._entries.pop(self._key(type_name, params, relation), None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)
