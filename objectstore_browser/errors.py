from __future__ import annotations
"""Error taxonomy raised by the store gateway and the controller."""
from enum import Enum
from typing import Iterable


class ObjectStoreError(Exception):
    """Base error for objectstore_browser."""


class ConnectionFailureKind(str, Enum):
    NETWORK = "network"
    AUTHENTICATION = "authentication"


_HINTS = {
    ConnectionFailureKind.NETWORK: (
        "Could not reach the endpoint. Check the URL, your network and the "
        "server's CORS configuration."
    ),
    ConnectionFailureKind.AUTHENTICATION: "Check your credentials and endpoint URL.",
}


class StoreConnectionError(ObjectStoreError):
    """Raised when a new session cannot be validated against the store."""

    def __init__(self, kind: ConnectionFailureKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def hint(self) -> str:
        return _HINTS[self.kind]

    def __str__(self) -> str:
        return f"{self.message}. {self.hint}"


class NotConnectedError(ObjectStoreError):
    """Raised when a store operation is attempted before connecting."""


class ListingError(ObjectStoreError):
    """Raised when a bucket or object listing fails, including mid-pagination."""

    def __init__(self, message: str, *, bucket: str | None = None, prefix: str = "", pages_fetched: int = 0):
        super().__init__(message)
        self.bucket = bucket
        self.prefix = prefix
        self.pages_fetched = pages_fetched


class DeleteError(ObjectStoreError):
    """Raised when a whole delete batch fails at the transport level."""

    def __init__(self, message: str, keys: Iterable[str] = ()):
        super().__init__(message)
        self.keys = list(keys)


class UploadError(ObjectStoreError):
    def __init__(self, message: str, *, file_name: str, target_key: str):
        super().__init__(message)
        self.file_name = file_name
        self.target_key = target_key


class DownloadError(ObjectStoreError):
    def __init__(self, message: str, *, key: str):
        super().__init__(message)
        self.key = key
