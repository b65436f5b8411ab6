# Remote collaborators: the backend API the fetch layer falls back to

from .base import NullRemote, RemoteCollaborator, RemoteResult
from .parse_rest import ParseRestRemote, build_related_to, build_where

__all__ = [
    "RemoteCollaborator",
    "RemoteResult",
    "NullRemote",
    "ParseRestRemote",
    "build_where",
    "build_related_to",
]
