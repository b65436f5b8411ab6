"""
Exceptions raised by the fetch layer.

Cache lookups never raise: "not found" is represented by None. Only the
remote boundary and the hydrate path produce errors.
"""
import json
from typing import Any, Dict, Optional

# Response bodies are truncated to this many characters in error output
BODY_PREVIEW_CHARS = 150


class FetcherError(Exception):
    """Base exception for all fetch layer errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class RemoteFetchError(FetcherError):
    """Raised when the remote API reports failure or cannot be reached."""

    def __init__(
        self,
        type_name: str,
        params: Optional[Dict[str, Any]] = None,
        status: Optional[int] = None,
        body: Any = None,
    ):
        if isinstance(body, str):
            body = body[:BODY_PREVIEW_CHARS]
        self.type_name = type_name
        self.params = params or {}
        self.status = status
        self.body = body

        response = json.dumps({"status": status, "body": body}, default=str)
        message = (
            f"ERROR fetching '{type_name}' with params "
            f"'{json.dumps(self.params, sort_keys=True, default=str)}'. "
            f"Response: {response}"
        )
        super().__init__(
            message=message,
            details={"type_name": type_name, "status": status, "body": body},
        )


class NotFoundError(FetcherError):
    """Raised when a summary references a collection that is not in cache."""

    def __init__(self, type_name: str, params: Optional[Dict[str, Any]] = None):
        self.type_name = type_name
        self.params = params or {}
        message = (
            f'Collection of type "{type_name}" not found for params: '
            f"{json.dumps(self.params, sort_keys=True, default=str)}"
        )
        super().__init__(
            message=message, details={"type_name": type_name, "params": self.params}
        )
