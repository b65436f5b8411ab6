"""
Type registry: what the fetch layer needs to know about entity and
collection types without depending on their concrete schemas.
"""
import logging
from typing import Any, Dict, Optional

from .models import Collection, Entity

logger = logging.getLogger("registry")

DEFAULT_ID_ATTRIBUTE = "objectId"


class TypeRegistry:
    """
    Maps collection types to entity types and entity types to id attributes.

    Unregistered collection names fall back to the singular form made by
    stripping a trailing "s" ("Users" -> "User").
    """

    def __init__(self, default_id_attribute: str = DEFAULT_ID_ATTRIBUTE):
        self.default_id_attribute = default_id_attribute
        self._id_attributes: Dict[str, str] = {}
        self._collection_entity_types: Dict[str, str] = {}

    def register_entity_type(self, type_name: str, id_attribute: Optional[str] = None) -> None:
        self._id_attributes[type_name] = id_attribute or self.default_id_attribute

    def register_collection_type(self, collection_name: str, entity_type: str) -> None:
        self._collection_entity_types[collection_name] = entity_type
        self._id_attributes.setdefault(entity_type, self.default_id_attribute)

    def id_attribute(self, type_name: str) -> str:
        """Name of the attribute holding the id for ``type_name``."""
        return self._id_attributes.get(type_name, self.default_id_attribute)

    def entity_type_for_collection(self, collection_name: str) -> str:
        entity_type = self._collection_entity_types.get(collection_name)
        if entity_type is not None:
            return entity_type
        if collection_name.endswith("s") and len(collection_name) > 1:
            return collection_name[:-1]
        logger.debug(f"No entity type registered for collection {collection_name}")
        return collection_name

    def is_entity(self, value: Any) -> bool:
        return isinstance(value, Entity)

    def is_collection(self, value: Any) -> bool:
        return isinstance(value, Collection)

    def entity_from_data(self, type_name: str, data: Dict[str, Any]) -> Entity:
        """
        Build an entity from a raw attribute dict.

        The id attribute is lifted out of the attributes into ``Entity.id``.
        """
        attributes = dict(data)
        entity_id = attributes.pop(self.id_attribute(type_name), None)
        if entity_id is None:
            entity_id = attributes.pop("id", None)
        return Entity(type_name, None if entity_id is None else str(entity_id), attributes)

    def entity_to_data(self, entity: Entity) -> Dict[str, Any]:
        data = dict(entity.attributes)
        if entity.id is not None:
            data[self.id_attribute(entity.type_name)] = entity.id
        return data
