"""
Entity and collection value types.

Both are observable: listeners subscribe with ``on(event, callback)`` and
are notified through ``trigger``. The fetch layer uses two events:

- ``change:id``   an entity's id was reassigned (callback(entity, old_id))
- ``refresh``     a background revalidation updated the object in place
"""
import copy
from typing import Any, Callable, Dict, List, Optional

from .specs import Relation


Listener = Callable[..., None]


class Observable:
    """Minimal event emitter shared by entities, collections and the fetcher."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, event: str, callback: Listener) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Optional[Listener] = None) -> None:
        """Remove one listener, or every listener for ``event``."""
        if callback is None:
            self._listeners.pop(event, None)
            return
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def has_listener(self, event: str, callback: Listener) -> bool:
        return callback in self._listeners.get(event, [])

    def trigger(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            callback(*args)


class Entity(Observable):
    """
    A single addressable record.

    Identity is ``(type_name, id)``. An entity whose id is None is transient
    and is never cached.
    """

    def __init__(
        self,
        type_name: str,
        id: Optional[str] = None,
        attributes: Optional[Dict[str, Any]] = None,
    ):
        super().__init__()
        self.type_name = type_name
        self._id = id
        self.attributes: Dict[str, Any] = dict(attributes or {})

    @property
    def id(self) -> Optional[str]:
        return self._id

    @id.setter
    def id(self, value: Optional[str]) -> None:
        old_id = self._id
        if value == old_id:
            return
        self._id = value
        self.trigger("change:id", self, old_id)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def copy(self) -> "Entity":
        """Detached copy without listeners."""
        return Entity(self.type_name, self._id, copy.deepcopy(self.attributes))

    def update_from(self, other: "Entity") -> bool:
        """
        Copy attributes (and id) from another entity.

        Returns:
            True if anything changed
        """
        changed = other.attributes != self.attributes or other.id != self._id
        self.attributes = dict(other.attributes)
        self.id = other.id
        return changed

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        return (
            self.type_name == other.type_name
            and self._id == other._id
            and self.attributes == other.attributes
        )

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"Entity({self.type_name!r}, id={self._id!r}, attributes={self.attributes!r})"


class Collection(Observable):
    """A named, parameterized, ordered set of entities plus metadata."""

    def __init__(
        self,
        type_name: str,
        items: Optional[List[Entity]] = None,
        params: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, Any]] = None,
        relation: Optional[Relation] = None,
    ):
        super().__init__()
        self.type_name = type_name
        self.items: List[Entity] = list(items or [])
        self.params: Dict[str, Any] = dict(params or {})
        self.meta: Dict[str, Any] = dict(meta or {})
        self.relation = relation

    @property
    def ids(self) -> List[Optional[str]]:
        return [item.id for item in self.items]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def update_from(self, other: "Collection") -> bool:
        """Replace items and meta with another collection's. Returns True on change."""
        changed = other.items != self.items or other.meta != self.meta
        self.items = list(other.items)
        self.meta = dict(other.meta)
        return changed

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Collection):
            return NotImplemented
        return (
            self.type_name == other.type_name
            and self.params == other.params
            and self.relation == other.relation
            and self.items == other.items
            and self.meta == other.meta
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"Collection({self.type_name!r}, ids={self.ids!r}, "
            f"params={self.params!r}, meta={self.meta!r})"
        )
