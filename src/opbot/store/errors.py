"""Store errors.

Every failure raised by :class:`opbot.store.Store` is one of the classes below.
Driver exceptions are chained as ``__cause__``.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for store operations.

    Attributes:
        operation: Name of the store operation that failed.
    """

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class StoreConnectionError(StoreError):
    """Raised when a client for the connection string cannot be created."""


class PingError(StoreError):
    """Raised when the liveness check against the server fails."""


class QueryError(StoreError):
    """Raised when a find or scan cannot be issued or executed."""


class CursorDecodeError(QueryError):
    """Raised when a scanned document does not match the expected shape."""


class CursorIterationError(QueryError):
    """Raised when a scan terminates abnormally after it has started."""


class InsertError(StoreError):
    """Raised when an insert fails at the driver level."""


class DeleteError(StoreError):
    """Raised when a delete fails at the driver level."""


class UpdateError(StoreError):
    """Raised when an update fails at the driver level."""


class NotFoundError(StoreError):
    """Raised when the singleton chapter document is absent."""


__all__ = [
    "StoreError",
    "StoreConnectionError",
    "PingError",
    "QueryError",
    "CursorDecodeError",
    "CursorIterationError",
    "InsertError",
    "DeleteError",
    "UpdateError",
    "NotFoundError",
]
