"""
Parse-style REST API client.

Resolves specs with plain ``requests`` calls. Requests are blocking, so they
run on a small thread pool and the event loop keeps scheduling other specs
while a call is in flight.
"""
import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

import requests

from config.settings import FetcherSettings
from ..errors import RemoteFetchError
from ..models import Collection, Entity
from ..registry import TypeRegistry
from ..specs import CollectionSpec, EntitySpec, Spec
from .base import RemoteCollaborator, RemoteResult

logger = logging.getLogger("remote.parse")

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


def build_where(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Translate spec params into a ``where`` constraint.

    Sequences become ``$in`` ("contained in") constraints, scalars equality.
    """
    where: Dict[str, Any] = {}
    for key, value in (params or {}).items():
        if isinstance(value, _SEQUENCE_TYPES):
            where[key] = {"$in": list(value)}
        else:
            where[key] = value
    return where


def build_related_to(spec: CollectionSpec) -> Dict[str, Any]:
    """``$relatedTo`` constraint selecting the children of the spec's relation."""
    relation = spec.relation
    return {
        "$relatedTo": {
            "object": {
                "__type": "Pointer",
                "className": relation.parent_type,
                "objectId": relation.parent_id,
            },
            "key": relation.key,
        }
    }


class ParseRestRemote(RemoteCollaborator):
    """
    Remote collaborator for a Parse-compatible REST API.

    Usage:
        remote = ParseRestRemote.from_settings(settings, registry)
        user = await remote.fetch(EntitySpec("User", id="42"))
    """

    def __init__(
        self,
        base_url: str,
        app_id: Optional[str] = None,
        api_key: Optional[str] = None,
        registry: Optional[TypeRegistry] = None,
        timeout: float = 30.0,
        max_workers: int = 8,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.registry = registry if registry is not None else TypeRegistry()
        self.timeout = timeout
        self._session = session or requests.Session()
        self._headers: Dict[str, str] = {}
        if app_id:
            self._headers["X-Parse-Application-Id"] = app_id
        if api_key:
            self._headers["X-Parse-REST-API-Key"] = api_key
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="remote-parse",
        )

    @classmethod
    def from_settings(
        cls, settings: FetcherSettings, registry: Optional[TypeRegistry] = None
    ) -> "ParseRestRemote":
        return cls(
            base_url=settings.remote_base_url,
            app_id=settings.remote_app_id,
            api_key=settings.remote_api_key,
            registry=registry,
            timeout=settings.remote_timeout_seconds,
            max_workers=settings.remote_max_workers,
        )

    @property
    def provider_name(self) -> str:
        return "parse"

    async def fetch(self, spec: Spec) -> RemoteResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.fetch_sync, spec)

    def fetch_sync(self, spec: Spec) -> RemoteResult:
        """Blocking variant of :meth:`fetch`."""
        if isinstance(spec, EntitySpec):
            return self._fetch_entity(spec)
        return self._fetch_collection(spec)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self._session.close()

    # -------------------------------------------------------------------------

    def _fetch_entity(self, spec: EntitySpec) -> Optional[Entity]:
        if spec.id is not None:
            data = self._request(f"classes/{spec.type_name}/{spec.id}", spec)
            return self.registry.entity_from_data(spec.type_name, data)

        query = {"where": json.dumps(build_where(spec.params)), "limit": 1}
        data = self._request(f"classes/{spec.type_name}", spec, query)
        results = data.get("results") or []
        if not results:
            return None
        return self.registry.entity_from_data(spec.type_name, results[0])

    def _fetch_collection(self, spec: CollectionSpec) -> Collection:
        entity_type = self.registry.entity_type_for_collection(spec.type_name)
        if spec.relation is not None:
            query = {
                "where": json.dumps(build_related_to(spec)),
                "redirectClassNameForKey": spec.relation.key,
            }
        else:
            query = {"where": json.dumps(build_where(spec.params))}

        data = self._request(f"classes/{entity_type}", spec, query)
        items = [
            self.registry.entity_from_data(entity_type, row)
            for row in data.get("results") or []
        ]
        meta = {k: v for k, v in data.items() if k != "results"}
        return Collection(
            spec.type_name, items, params=spec.params, meta=meta, relation=spec.relation
        )

    def _request(
        self,
        path: str,
        spec: Spec,
        query: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """GET ``path`` and return the decoded JSON body."""
        url = f"{self.base_url}/{path}"
        logger.info(f"GET {url} params={query}")
        try:
            response = self._session.get(
                url, params=query, headers=self._headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Parse API transport error for {spec.type_name}: {e}")
            raise RemoteFetchError(spec.type_name, spec.params, status=None, body=str(e)) from e

        if not response.ok:
            logger.error(
                f"Parse API error for {spec.type_name}: HTTP {response.status_code}"
            )
            raise RemoteFetchError(
                spec.type_name,
                spec.params,
                status=response.status_code,
                body=response.text,
            )
        return response.json()
