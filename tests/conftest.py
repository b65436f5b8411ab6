"""
Shared fixtures: an in-memory remote API and fetchers wired to it.
"""
import asyncio
from typing import Any, Dict, List, Optional

import pytest

from config.settings import FetcherSettings
from modelfetch.cache import FreshnessThrottle, get_freshness_throttle
from modelfetch.errors import RemoteFetchError
from modelfetch.fetcher import Fetcher
from modelfetch.models import Collection, Entity
from modelfetch.registry import TypeRegistry
from modelfetch.specs import EntitySpec, Spec


class FakeRemote:
    """
    Remote collaborator backed by dicts of rows.

    Records every spec it is asked to resolve. ``delay`` makes each call
    yield to the event loop so concurrent specs actually overlap.
    """

    provider_name = "fake"

    def __init__(self, rows: Optional[Dict[str, List[Dict[str, Any]]]] = None, delay: float = 0.0):
        self.rows = rows or {}
        self.delay = delay
        self.calls: List[Spec] = []
        self.failures: Dict[str, RemoteFetchError] = {}

    def fail_for(self, type_name: str, status: int = 500, body: str = "boom") -> None:
        self.failures[type_name] = RemoteFetchError(type_name, status=status, body=body)

    async def fetch(self, spec: Spec):
        self.calls.append(spec)
        await asyncio.sleep(self.delay)
        if spec.type_name in self.failures:
            raise self.failures[spec.type_name]

        if isinstance(spec, EntitySpec):
            for row in self.rows.get(spec.type_name, []):
                if spec.id is not None and row["objectId"] == spec.id:
                    return self._entity(spec.type_name, row)
                if spec.id is None and all(row.get(k) == v for k, v in spec.params.items()):
                    return self._entity(spec.type_name, row)
            return None

        entity_type = spec.type_name[:-1]
        items = [
            self._entity(entity_type, row)
            for row in self.rows.get(entity_type, [])
            if all(
                row.get(k) in v if isinstance(v, list) else row.get(k) == v
                for k, v in spec.params.items()
            )
        ]
        return Collection(spec.type_name, items, params=spec.params, meta={"count": len(items)})

    @staticmethod
    def _entity(type_name: str, row: Dict[str, Any]) -> Entity:
        attributes = {k: v for k, v in row.items() if k != "objectId"}
        return Entity(type_name, row["objectId"], attributes)


@pytest.fixture(autouse=True)
def reset_freshness_throttle():
    """Keep freshness checks recorded by one test out of the next."""
    get_freshness_throttle().reset()
    yield
    get_freshness_throttle().reset()


@pytest.fixture
def rows():
    return {
        "User": [
            {"objectId": "42", "name": "Ada", "role": "admin"},
            {"objectId": "43", "name": "Grace", "role": "dev"},
            {"objectId": "44", "name": "Linus", "role": "dev"},
        ],
        "Post": [
            {"objectId": "p1", "title": "Hello", "author": "42"},
        ],
    }


@pytest.fixture
def remote(rows):
    return FakeRemote(rows)


@pytest.fixture
def throttle():
    return FreshnessThrottle(interval_ms=10000)


@pytest.fixture
def client_settings():
    return FetcherSettings(execution_context="client")


@pytest.fixture
def fetcher(remote, throttle, client_settings):
    return Fetcher(remote, registry=TypeRegistry(), settings=client_settings, throttle=throttle)
