"""Remote collaborator abstraction.

The fetch layer never talks to a backend directly. It hands unresolved
specs to a RemoteCollaborator and caches whatever comes back.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union

from ..models import Collection, Entity
from ..specs import Spec

RemoteResult = Union[Entity, Collection, None]


class RemoteCollaborator(ABC):
    """
    Abstract base class for remote entity APIs.

    Implementations resolve one spec per call:
    - EntitySpec with an id: point lookup
    - EntitySpec without an id: filtered search, first match or None
    - CollectionSpec: filtered search, or the entities related to a parent
      when the spec carries a relation

    A scalar param is an equality filter; a sequence param is a
    "contained in" filter.
    """

    @abstractmethod
    async def fetch(self, spec: Spec) -> RemoteResult:
        """
        Resolve a spec against the remote API.

        Raises:
            RemoteFetchError: The API reported failure or could not be reached
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this remote provider."""
        pass


class NullRemote(RemoteCollaborator):
    """
    Remote that never finds anything.

    Used for cache-only fetchers (e.g. hydrating from bootstrapped data).
    """

    async def fetch(self, spec: Spec) -> Optional[Entity]:
        return None

    @property
    def provider_name(self) -> str:
        return "null"
