"""
Fetch orchestration: resolve batches of specs against the caches or the
remote API.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from config.settings import FetcherSettings, settings as default_settings

from .cache import CollectionStore, EntityStore, FreshnessThrottle, RequestCoalescer, get_freshness_throttle
from .decision import FetchDecision, decide
from .errors import NotFoundError
from .models import Collection, Entity, Observable
from .registry import TypeRegistry
from .remote import RemoteCollaborator
from .specs import (
    CollectionSpec,
    CollectionSummary,
    EntitySpec,
    EntitySummary,
    Spec,
    Summary,
    identity_key,
    spec_from_dict,
    summary_from_dict,
)

logger = logging.getLogger("fetcher")

SpecLike = Union[Spec, Dict[str, Any]]
Resolved = Union[Entity, Collection, None]
BatchCallback = Callable[[Optional[Exception], Optional[Dict[str, Any]]], None]


@dataclass
class FetchOptions:
    """Per-call overrides. None means "use the fetcher's configured default"."""
    read_from_cache: Optional[bool] = None
    write_to_cache: Optional[bool] = None


class Fetcher(Observable):
    """
    Resolves named specs from cache when possible and from the remote API
    otherwise, then keeps the caches coherent.

    - All specs in a batch resolve concurrently
    - The first failure fails the whole batch
    - Cache hits with ``check_fresh`` trigger a throttled background
      revalidation that reports through the object's ``refresh`` event
    - Concurrent misses for the same identity share one remote call

    Events: ``fetch:start`` (specs) and ``fetch:end`` (specs, error, results).
    """

    def __init__(
        self,
        remote: RemoteCollaborator,
        registry: Optional[TypeRegistry] = None,
        settings: Optional[FetcherSettings] = None,
        throttle: Optional[FreshnessThrottle] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            remote: Backend collaborator used for cache misses
            registry: Type registry (id attributes, collection entity types)
            settings: Explicit configuration; defaults to the module settings
            throttle: Freshness throttle; defaults to the process-wide one
        """
        super().__init__()
        self.settings = settings if settings is not None else default_settings
        self.remote = remote
        self.registry = registry if registry is not None else TypeRegistry()
        self.entity_store = EntityStore(self.registry)
        self.collection_store = CollectionStore(self.entity_store)
        self.throttle = throttle if throttle is not None else get_freshness_throttle()
        self.coalescer = RequestCoalescer() if self.settings.coalesce_requests else None

        self.pending_fetches = 0
        self._revalidating: Set[asyncio.Task] = set()

        # Stats tracking
        self._stats = {
            "hits": 0,
            "misses": 0,
            "remote_calls": 0,
            "revalidations": 0,
            "revalidation_failures": 0,
        }

    # =========================================================================
    # Batch fetch
    # =========================================================================

    async def fetch(
        self,
        specs_by_name: Mapping[str, SpecLike],
        options: Union[FetchOptions, Dict[str, Any], None] = None,
        callback: Optional[BatchCallback] = None,
    ) -> Optional[Dict[str, Resolved]]:
        """
        Resolve a batch of named specs concurrently.

        Args:
            specs_by_name: Mapping of result name to spec (or spec dict)
            options: Cache read/write overrides for this batch
            callback: Optional ``callback(err, results)``; when given, errors
                are delivered to it instead of being raised

        Returns:
            Results keyed by the original names (None if the batch failed
            and a callback received the error)

        Raises:
            RemoteFetchError: First remote failure in the batch
        """
        specs = {name: self._as_spec(spec) for name, spec in specs_by_name.items()}
        read_from_cache, write_to_cache = self._resolve_options(options)

        self.pending_fetches += 1
        self.trigger("fetch:start", specs)
        try:
            results = await self._retrieve(specs, read_from_cache)
        except Exception as err:
            self.pending_fetches -= 1
            logger.error(f"Fetch batch failed ({', '.join(specs)}): {err}")
            self.trigger("fetch:end", specs, err, None)
            if callback is None:
                raise
            callback(err, None)
            return None

        self.pending_fetches -= 1
        self.trigger("fetch:end", specs, None, results)
        if write_to_cache:
            self.store_results(results)
        if callback is not None:
            callback(None, results)
        return results

    def _resolve_options(
        self, options: Union[FetchOptions, Dict[str, Any], None]
    ) -> Tuple[bool, bool]:
        if options is None:
            options = FetchOptions()
        elif isinstance(options, dict):
            options = FetchOptions(**options)
        read_from_cache = options.read_from_cache
        if read_from_cache is None:
            read_from_cache = self.settings.resolved_read_from_cache
        write_to_cache = options.write_to_cache
        if write_to_cache is None:
            write_to_cache = self.settings.resolved_write_to_cache
        return read_from_cache, write_to_cache

    @staticmethod
    def _as_spec(spec: SpecLike) -> Spec:
        if isinstance(spec, (EntitySpec, CollectionSpec)):
            return spec
        return spec_from_dict(spec)

    async def _retrieve(self, specs: Dict[str, Spec], read_from_cache: bool) -> Dict[str, Resolved]:
        names = list(specs)
        values = await asyncio.gather(
            *(self._retrieve_one(specs[name], read_from_cache) for name in names)
        )
        return dict(zip(names, values))

    async def _retrieve_one(self, spec: Spec, read_from_cache: bool) -> Resolved:
        if not read_from_cache:
            return await self.fetch_from_remote(spec)

        if isinstance(spec, EntitySpec):
            candidate = self._retrieve_entity(spec)
        else:
            candidate = await self.collection_store.get(
                spec.type_name, spec.params, spec.relation
            )
        return await self._test_and_get_data(spec, candidate)

    def _retrieve_entity(self, spec: EntitySpec) -> Optional[Entity]:
        """Cached entity by id, else by the other params when no id is given."""
        id_attribute = self.registry.id_attribute(spec.type_name)
        entity_id = spec.id if spec.id is not None else spec.params.get(id_attribute)
        if entity_id is not None:
            return self.entity_store.get(spec.type_name, entity_id, exact=True)
        return self.entity_store.find(spec.type_name, spec.params)

    async def _test_and_get_data(self, spec: Spec, candidate: Resolved) -> Resolved:
        allow_check = (
            self.settings.resolved_background_revalidation
            and self.throttle.should_check_fresh(spec)
        )
        decision = decide(
            candidate,
            spec,
            should_check_fresh=allow_check,
            id_attribute=self.registry.id_attribute(spec.type_name),
        )

        if decision is FetchDecision.MISS:
            logger.debug(f"CACHE MISS: {spec.kind} {spec.type_name}")
            self._stats["misses"] += 1
            return await self.fetch_from_remote(spec)

        self._stats["hits"] += 1
        if decision is FetchDecision.STALE:
            logger.debug(f"CACHE HIT (revalidating): {spec.kind} {spec.type_name}")
            self._trigger_background_revalidate(spec, candidate)
            self.throttle.did_check_fresh(spec)
        else:
            logger.debug(f"CACHE HIT: {spec.kind} {spec.type_name}")
        return candidate

    async def fetch_from_remote(self, spec: Spec) -> Resolved:
        """Resolve a spec via the remote collaborator, sharing in-flight calls."""

        async def call() -> Resolved:
            self._stats["remote_calls"] += 1
            logger.info(f"Remote fetch: {spec.kind} {spec.type_name} params={spec.params}")
            return await self.remote.fetch(spec)

        if self.coalescer is None:
            result = await call()
        else:
            result = await self.coalescer.get_or_fetch(identity_key(spec), call)
        if isinstance(spec, CollectionSpec) and isinstance(result, Collection) and result.relation is None:
            result.relation = spec.relation
        # A foreground fetch is as fresh as a background check would be
        if spec.check_fresh:
            self.throttle.did_check_fresh(spec)
        return result

    # =========================================================================
    # Background revalidation
    # =========================================================================

    def _trigger_background_revalidate(self, spec: Spec, candidate: Union[Entity, Collection]) -> None:
        """Start a revalidation without blocking or being awaited by the caller."""
        task = asyncio.get_running_loop().create_task(self._check_fresh(spec, candidate))
        self._revalidating.add(task)
        task.add_done_callback(self._revalidating.discard)

    async def _check_fresh(self, spec: Spec, candidate: Union[Entity, Collection]) -> None:
        if isinstance(candidate, Entity):
            # Re-read the entity by id even if it was found by attributes
            spec = EntitySpec(type_name=candidate.type_name, id=candidate.id, params=spec.params)
        key = identity_key(spec)
        try:
            logger.debug(f"Background revalidation started: {key}")
            fresh = await self.remote.fetch(spec)
            self._stats["revalidations"] += 1
            if fresh is None or type(fresh) is not type(candidate):
                return
            if candidate.update_from(fresh):
                if isinstance(candidate, Collection) and self.settings.resolved_write_to_cache:
                    for item in candidate.items:
                        self.entity_store.set(item)
                logger.info(f"Revalidation found changes: {key}")
                candidate.trigger("refresh", candidate)
            logger.debug(f"Background revalidation complete: {key}")
        except Exception as e:
            self._stats["revalidation_failures"] += 1
            logger.warning(f"Background revalidation failed: {key} - {e}")

    async def wait_for_revalidations(self) -> None:
        """Wait until every background revalidation has settled."""
        while self._revalidating:
            await asyncio.gather(*list(self._revalidating))

    # =========================================================================
    # Cache writes and reads
    # =========================================================================

    def store_results(self, results: Mapping[str, Resolved]) -> None:
        for value in results.values():
            self._store(value)

    def _store(self, value: Resolved) -> None:
        if self.registry.is_collection(value):
            self.collection_store.set(value)
            for item in value.items:
                self.entity_store.set(item)
        elif self.registry.is_entity(value):
            self.entity_store.set(value)

    def retrieve_models(self, type_name: str, ids: Iterable[Any]) -> List[Optional[Entity]]:
        """Cached entity (or None) for each id, in order."""
        return [self.entity_store.get(type_name, entity_id) for entity_id in ids]

    def retrieve_models_for_collection_name(
        self, collection_name: str, ids: Iterable[Any]
    ) -> List[Optional[Entity]]:
        entity_type = self.registry.entity_type_for_collection(collection_name)
        return self.retrieve_models(entity_type, ids)

    def summarize(self, value: Resolved) -> Dict[str, Any]:
        """Serializable descriptor of an entity or collection ({} otherwise)."""
        if self.registry.is_collection(value):
            return CollectionSummary(
                type_name=value.type_name,
                ids=value.ids,
                params=value.params,
                meta=value.meta,
                relation=value.relation,
            ).to_dict()
        if self.registry.is_entity(value):
            return EntitySummary(type_name=value.type_name, id=value.id).to_dict()
        return {}

    # =========================================================================
    # Building values for specs
    # =========================================================================

    def get_entity_for_spec(
        self, spec: EntitySpec, attributes: Optional[Dict[str, Any]] = None
    ) -> Entity:
        data = dict(attributes or {})
        for key, value in spec.params.items():
            data.setdefault(key, value)
        entity = self.registry.entity_from_data(spec.type_name, data)
        if entity.id is None and spec.id is not None:
            entity.id = spec.id
        return entity

    def get_collection_for_spec(
        self,
        spec: CollectionSpec,
        items: Optional[Iterable[Union[Entity, Dict[str, Any]]]] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Collection:
        entity_type = self.registry.entity_type_for_collection(spec.type_name)
        entities = [
            item if isinstance(item, Entity) else self.registry.entity_from_data(entity_type, item)
            for item in items or []
        ]
        return Collection(
            spec.type_name, entities, params=spec.params, meta=meta, relation=spec.relation
        )

    def get_model_or_collection_for_spec(
        self, spec: Spec, data: Any = None, meta: Optional[Dict[str, Any]] = None
    ) -> Union[Entity, Collection]:
        if isinstance(spec, EntitySpec):
            return self.get_entity_for_spec(spec, data)
        return self.get_collection_for_spec(spec, data, meta)

    # =========================================================================
    # Pre-seeding and hydration
    # =========================================================================

    def bootstrap_data(self, named_results: Mapping[str, Dict[str, Any]]) -> Dict[str, Union[Entity, Collection]]:
        """
        Seed both caches from already-fetched data.

        Args:
            named_results: ``{name: {"summary": <summary dict>, "data": <attrs or item list>}}``

        Returns:
            The values built and stored, keyed by name
        """
        results: Dict[str, Union[Entity, Collection]] = {}
        for name, payload in named_results.items():
            summary = summary_from_dict(payload["summary"])
            meta = summary.meta if isinstance(summary, CollectionSummary) else None
            results[name] = self.get_model_or_collection_for_spec(
                summary.to_spec(), payload.get("data"), meta
            )
        self.store_results(results)
        logger.info(f"Bootstrapped {len(results)} results")
        return results

    async def hydrate(
        self,
        summaries: Mapping[str, Union[Summary, Dict[str, Any]]],
        options: Union[FetchOptions, Dict[str, Any], None] = None,
        callback: Optional[BatchCallback] = None,
    ) -> Dict[str, Resolved]:
        """
        Resolve summaries from cache only; the remote API is never consulted.

        Entity summaries that are not cached resolve to None.

        Args:
            summaries: Mapping of result name to summary (or summary dict)
            options: Same shape as :meth:`fetch` options. They are validated
                but have no effect, since hydration never reads remotely or
                writes back
            callback: Optional ``callback(err, results)``

        Raises:
            NotFoundError: A collection summary has no cache entry
        """
        self._resolve_options(options)
        results: Dict[str, Resolved] = {}
        for name, summary in summaries.items():
            if isinstance(summary, dict):
                summary = summary_from_dict(summary)
            if isinstance(summary, EntitySummary):
                results[name] = self.entity_store.get(summary.type_name, summary.id, exact=True)
                continue
            collection = await self.collection_store.get(
                summary.type_name, summary.params, summary.relation
            )
            if collection is None:
                raise NotFoundError(summary.type_name, summary.params)
            results[name] = collection

        if callback is not None:
            callback(None, results)
        return results

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def clear(self) -> int:
        """Empty both caches. Returns the number of entries removed."""
        count = self.entity_store.clear() + self.collection_store.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def get_stats(self) -> Dict[str, Any]:
        """Get fetcher statistics."""
        return {
            **self._stats,
            "coalesced": self.coalescer.coalesced_count if self.coalescer else 0,
            "pending_fetches": self.pending_fetches,
            "revalidating_count": len(self._revalidating),
            "entities": len(self.entity_store),
            "collections": len(self.collection_store),
            "freshness_keys": len(self.throttle),
            "coalescer": self.coalescer.get_stats() if self.coalescer else None,
        }
