"""Custom exception hierarchy for pystorage."""

from __future__ import annotations


class StorageError(Exception):
    """Base exception for all pystorage errors."""


class StorageConfigError(StorageError):
    """Invalid or missing configuration."""


class StorageKeyError(StorageError, KeyError):
    """Strict lookup of a key that has no entry in the store."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"no entry for key {self.key!r}"


class StorageSchedulingError(StorageError):
    """A deferred validation could not be scheduled.

    Raised when a validator hands back an awaitable while no asyncio
    event loop is running in the current thread.
    """
