"""
Fetch specs: declarative descriptions of the data a caller needs.

A spec is one of two variants, ``EntitySpec`` or ``CollectionSpec``.
Summaries are the serializable form of a resolved value and can be turned
back into specs.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

# needs_fetch may be a flag or a predicate over the cached candidate
NeedsFetch = Union[bool, Callable[[Any], bool], None]


def fingerprint(params: Optional[Dict[str, Any]]) -> str:
    """Stable serialization of a params mapping (key order irrelevant)."""
    return json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)


def _normalize_keys(keys: Union[str, Iterable[str], None]) -> frozenset:
    if keys is None:
        return frozenset()
    if isinstance(keys, str):
        return frozenset([keys])
    return frozenset(keys)


@dataclass(frozen=True)
class Relation:
    """Scopes a collection to the entities related to a parent through ``key``."""
    parent_type: str
    parent_id: str
    key: str

    def to_dict(self) -> Dict[str, str]:
        return {"parent_type": self.parent_type, "parent_id": self.parent_id, "key": self.key}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Relation":
        # Also accept the pointer form {"parent": {"className": ..., "id": ...}, "key": ...}
        parent = data.get("parent")
        if parent is not None:
            return cls(
                parent_type=parent.get("className") or parent.get("type_name"),
                parent_id=parent.get("id") or parent.get("objectId"),
                key=data["key"],
            )
        return cls(
            parent_type=data["parent_type"],
            parent_id=data["parent_id"],
            key=data["key"],
        )


@dataclass
class EntitySpec:
    """Request for a single entity, by id or by matching params."""
    type_name: str
    id: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    ensure_keys: frozenset = field(default_factory=frozenset)
    needs_fetch: NeedsFetch = None
    check_fresh: bool = False

    def __post_init__(self):
        self.ensure_keys = _normalize_keys(self.ensure_keys)

    @property
    def kind(self) -> str:
        return "entity"


@dataclass
class CollectionSpec:
    """Request for a parameterized (optionally relation-scoped) collection."""
    type_name: str
    params: Dict[str, Any] = field(default_factory=dict)
    relation: Optional[Relation] = None
    ensure_keys: frozenset = field(default_factory=frozenset)
    needs_fetch: NeedsFetch = None
    check_fresh: bool = False

    def __post_init__(self):
        self.ensure_keys = _normalize_keys(self.ensure_keys)

    @property
    def kind(self) -> str:
        return "collection"


Spec = Union[EntitySpec, CollectionSpec]


def identity_key(spec: Spec) -> str:
    """Key used to share in-flight remote calls between identical specs."""
    if isinstance(spec, EntitySpec) and spec.id is not None:
        return f"entity:{spec.type_name}:{spec.id}"
    if isinstance(spec, CollectionSpec) and spec.relation is not None:
        return (
            f"collection:{spec.type_name}:{fingerprint(spec.params)}"
            f":{fingerprint(spec.relation.to_dict())}"
        )
    return f"{spec.kind}:{spec.type_name}:{fingerprint(spec.params)}"


def spec_from_dict(data: Dict[str, Any]) -> Spec:
    """
    Build a spec from its dictionary form.

    ``{"model": "User", "id": "42"}`` and ``{"collection": "Users", "params": {...}}``
    are accepted, as are ``type_name`` + ``kind`` dictionaries.
    """
    common = {
        "params": dict(data.get("params") or {}),
        "ensure_keys": data.get("ensure_keys", data.get("ensureKeys")),
        "needs_fetch": data.get("needs_fetch", data.get("needsFetch")),
        "check_fresh": bool(data.get("check_fresh", data.get("checkFresh", False))),
    }
    if data.get("model") is not None or data.get("kind") == "entity":
        return EntitySpec(
            type_name=data.get("model") or data["type_name"],
            id=data.get("id"),
            **common,
        )
    if data.get("collection") is not None or data.get("kind") == "collection":
        relation = data.get("relation")
        return CollectionSpec(
            type_name=data.get("collection") or data["type_name"],
            relation=Relation.from_dict(relation) if isinstance(relation, dict) else relation,
            **common,
        )
    raise ValueError(f"Spec must name a model or a collection: {data!r}")


# =============================================================================
# Summaries
# =============================================================================

@dataclass
class EntitySummary:
    """Persisted form of a resolved entity."""
    type_name: str
    id: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"model": self.type_name, "id": self.id}

    def to_spec(self) -> EntitySpec:
        return EntitySpec(type_name=self.type_name, id=self.id)


@dataclass
class CollectionSummary:
    """Persisted form of a resolved collection."""
    type_name: str
    ids: List[Optional[str]] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    relation: Optional[Relation] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "collection": self.type_name,
            "ids": list(self.ids),
            "params": dict(self.params),
            "meta": dict(self.meta),
        }
        if self.relation is not None:
            data["relation"] = self.relation.to_dict()
        return data

    def to_spec(self) -> CollectionSpec:
        return CollectionSpec(
            type_name=self.type_name, params=dict(self.params), relation=self.relation
        )


Summary = Union[EntitySummary, CollectionSummary]


def summary_from_dict(data: Dict[str, Any]) -> Summary:
    if data.get("model") is not None:
        return EntitySummary(type_name=data["model"], id=data.get("id"))
    if data.get("collection") is not None:
        relation = data.get("relation")
        return CollectionSummary(
            type_name=data["collection"],
            ids=list(data.get("ids") or []),
            params=dict(data.get("params") or {}),
            meta=dict(data.get("meta") or {}),
            relation=Relation.from_dict(relation) if isinstance(relation, dict) else relation,
        )
    raise ValueError(f"Summary must name a model or a collection: {data!r}")
