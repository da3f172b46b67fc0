"""Exception types raised by herotree."""

from __future__ import annotations


class HerotreeError(Exception):
    """Base class for herotree errors."""


class ConfigError(HerotreeError, ValueError):
    """Raised when a configuration value is out of range."""


class RemoteAPIError(HerotreeError):
    """A request to the remote API failed.

    Attributes:
        status: HTTP status code, or None for transport failures.
        error_id: Machine-readable error id from the response body, if any.
        message: Human-readable message.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        error_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.error_id = error_id

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        if self.error_id:
            return f"[{self.status} {self.error_id}] {self.message}"
        return f"[{self.status}] {self.message}"


class RateLimitedError(RemoteAPIError):
    """The remote API rejected a request because the rate budget is spent."""


class DuplicateIdentityError(AssertionError):
    """Two records in one collection share the same identity.

    This is an implementation bug (or a broken remote response), never a
    condition to recover from.
    """

    def __init__(self, collection: str, identity: str) -> None:
        super().__init__(f"duplicate identity {identity!r} in {collection}")
        self.collection = collection
        self.identity = identity
