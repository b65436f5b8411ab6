"""
Cache hit / miss / stale decisions for a spec and its cached candidate.
"""
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union

from .models import Collection, Entity
from .specs import Spec


class FetchDecision(Enum):
    """Outcome of consulting the cache for one spec."""
    HIT = "hit"        # Serve the cached candidate
    STALE = "stale"    # Serve the cached candidate and revalidate in the background
    MISS = "miss"      # Fetch from the remote API


def _candidate_data(
    candidate: Union[Entity, Collection, Dict[str, Any]],
    id_attribute: Optional[str] = None,
) -> Dict[str, Any]:
    if isinstance(candidate, Entity):
        # The id lives on the entity, not in its attributes
        if id_attribute is not None and candidate.id is not None:
            return {**candidate.attributes, id_attribute: candidate.id}
        return candidate.attributes
    if isinstance(candidate, Collection):
        return candidate.meta
    return candidate


def is_missing_keys(data: Dict[str, Any], keys: Optional[Iterable[str]]) -> bool:
    """True if any of ``keys`` is absent or None in ``data``."""
    if keys is None:
        return False
    if isinstance(keys, str):
        keys = [keys]
    return any(data.get(key) is None for key in keys)


def needs_fetch(candidate: Any, spec: Spec, id_attribute: Optional[str] = None) -> bool:
    """
    Decide whether a cached candidate fails to satisfy ``spec``.

    Structural checks run before the caller-supplied predicate. When
    ``id_attribute`` is given, an entity with an id satisfies that key.
    """
    if candidate is None:
        return True
    if is_missing_keys(_candidate_data(candidate, id_attribute), spec.ensure_keys):
        return True
    if spec.needs_fetch is True:
        return True
    if callable(spec.needs_fetch) and spec.needs_fetch(candidate):
        return True
    return False


def decide(
    candidate: Any,
    spec: Spec,
    should_check_fresh: bool = False,
    id_attribute: Optional[str] = None,
) -> FetchDecision:
    """
    Classify a lookup.

    Args:
        candidate: Cached entity/collection, or None
        spec: The spec being resolved
        should_check_fresh: Whether background revalidation is allowed now
            (execution context supports it and the throttle permits it)
        id_attribute: Attribute name under which an entity candidate's id
            counts as present for ``ensure_keys``
    """
    if needs_fetch(candidate, spec, id_attribute):
        return FetchDecision.MISS
    if spec.check_fresh and should_check_fresh:
        return FetchDecision.STALE
    return FetchDecision.HIT
