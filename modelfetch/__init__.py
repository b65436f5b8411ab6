"""
Fetch orchestration and cache layer between application code and a remote
entity API.
"""
from .errors import FetcherError, NotFoundError, RemoteFetchError
from .models import Collection, Entity
from .specs import (
    CollectionSpec,
    CollectionSummary,
    EntitySpec,
    EntitySummary,
    Relation,
    fingerprint,
    spec_from_dict,
)
from .registry import TypeRegistry
from .decision import FetchDecision, needs_fetch
from .remote import NullRemote, ParseRestRemote, RemoteCollaborator
from .fetcher import FetchOptions, Fetcher

__all__ = [
    # Errors
    "FetcherError",
    "NotFoundError",
    "RemoteFetchError",
    # Values and specs
    "Entity",
    "Collection",
    "EntitySpec",
    "CollectionSpec",
    "Relation",
    "EntitySummary",
    "CollectionSummary",
    "fingerprint",
    "spec_from_dict",
    # Collaborators
    "TypeRegistry",
    "RemoteCollaborator",
    "NullRemote",
    "ParseRestRemote",
    # Orchestration
    "FetchDecision",
    "needs_fetch",
    "FetchOptions",
    "Fetcher",
]
