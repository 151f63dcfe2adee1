"""Bucketed JSON store over a key-value backend.

The store keeps each logical collection (items, achievements, daily points,
user, migration status) as one JSON document under a stable key. Reads always
go to the backend, so a write from another execution context is visible on
the next call.

Example:
    >>> store = Store(MemoryBackend())
    >>> store.write_rows(Bucket.ITEMS, [{"id": "1"}])
    '[{"id":"1"}]'
    >>> store.read_rows(Bucket.ITEMS)
    [{'id': '1'}]
"""

import json
from enum import StrEnum
from typing import Any

from waypointdb.config import Settings, StorageBackendKind, settings
from waypointdb.errors import CapacityExceededError
from waypointdb.interfaces import IStorageBackend
from waypointdb.logging import logger
from waypointdb.metrics import record_capacity_error, record_store_write


class Bucket(StrEnum):
    """Logical collections persisted by the store."""

    ITEMS = "items"
    ACHIEVEMENTS = "achievements"
    DAILY_POINTS = "daily_points"
    USER = "user"
    MIGRATION_STATUS = "migration_status"


DATA_BUCKETS = (Bucket.ITEMS, Bucket.ACHIEVEMENTS, Bucket.DAILY_POINTS, Bucket.USER)
"""Buckets holding user data; migration status is bookkeeping and survives a local wipe."""


# =============================================================================
# In-memory Backend
# =============================================================================


class MemoryBackend:
    """Dict-backed storage with an optional simulated quota.

    Args:
        quota_bytes: Maximum UTF-8 bytes across all keys and values; None disables

    Example:
        >>> backend = MemoryBackend(quota_bytes=16)
        >>> backend.set("k", "x" * 32)
        Traceback (most recent call last):
        ...
        waypointdb.errors.CapacityExceededError: ...
    """

    def __init__(self, quota_bytes: int | None = None):
        self.quota_bytes = quota_bytes
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            required = self._bytes_excluding(key) + _size(key) + _size(value)
            if required > self.quota_bytes:
                raise CapacityExceededError(key, required, self.quota_bytes)
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self.data)

    def used_bytes(self) -> int:
        return self._bytes_excluding(None)

    def _bytes_excluding(self, key: str | None) -> int:
        return sum(_size(k) + _size(v) for k, v in self.data.items() if k != key)


def _size(text: str) -> int:
    return len(text.encode("utf-8"))


# =============================================================================
# Store
# =============================================================================


class Store:
    """JSON bucket store.

    Args:
        backend: Key-value medium
        prefix: Prefix for every bucket key (``waypoint:`` by default)
    """

    def __init__(self, backend: IStorageBackend, prefix: str | None = None):
        self.backend = backend
        self.prefix = prefix if prefix is not None else settings.storage_key_prefix

    def key(self, bucket: Bucket) -> str:
        """Get the storage key for a bucket."""
        return f"{self.prefix}{Bucket(bucket).value}"

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def read_raw(self, bucket: Bucket) -> str | None:
        """Read the serialized payload of a bucket, or None if absent."""
        return self.backend.get(self.key(bucket))

    def read_rows(self, bucket: Bucket) -> list[dict[str, Any]]:
        """Read a list bucket.

        A missing key reads as empty. A corrupt payload or a non-list document
        also reads as empty and is logged; individual non-object entries are
        dropped.
        """
        return self.parse_rows(bucket, self.read_raw(bucket))

    def parse_rows(self, bucket: Bucket, raw: str | None) -> list[dict[str, Any]]:
        """Parse a list bucket payload already read from the backend."""
        data = self._decode(bucket, raw)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.error(f"Bucket {self.key(bucket)} is not a list; treating it as empty")
            return []
        rows = [row for row in data if isinstance(row, dict)]
        if len(rows) != len(data):
            logger.warning(f"Skipped {len(data) - len(rows)} non-object rows in {self.key(bucket)}")
        return rows

    def read_object(self, bucket: Bucket) -> dict[str, Any] | None:
        """Read an object bucket; missing or corrupt reads as None."""
        data = self._decode(bucket, self.read_raw(bucket))
        if data is None:
            return None
        if not isinstance(data, dict):
            logger.error(f"Bucket {self.key(bucket)} is not an object; ignoring it")
            return None
        return data

    def _decode(self, bucket: Bucket, raw: str | None) -> Any:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt JSON in {self.key(bucket)}: {e}")
            return None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def write_rows(self, bucket: Bucket, rows: list[dict[str, Any]]) -> str:
        """Replace a list bucket.

        Returns:
            The serialized payload now stored

        Raises:
            CapacityExceededError: If the backend is full; nothing is retried
        """
        return self._write(bucket, rows)

    def write_object(self, bucket: Bucket, data: dict[str, Any]) -> str:
        """Replace an object bucket."""
        return self._write(bucket, data)

    def _write(self, bucket: Bucket, data: Any) -> str:
        bucket = Bucket(bucket)
        payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        try:
            self.backend.set(self.key(bucket), payload)
        except CapacityExceededError:
            record_capacity_error(bucket.value)
            record_store_write(bucket.value, "error")
            logger.error(f"❌ Storage full while writing {self.key(bucket)} ({len(payload)} chars)")
            raise
        record_store_write(bucket.value, "success", len(payload))
        return payload

    def remove(self, bucket: Bucket) -> None:
        self.backend.remove(self.key(bucket))

    def clear_local_data(self) -> None:
        """Remove every user-data bucket, keeping migration status."""
        for bucket in DATA_BUCKETS:
            self.remove(bucket)
        logger.info("Cleared local data buckets")

    def usage(self) -> dict[str, int]:
        """Serialized size of each present bucket, in characters."""
        sizes = {}
        for bucket in Bucket:
            raw = self.read_raw(bucket)
            if raw is not None:
                sizes[bucket.value] = len(raw)
        return sizes


# =============================================================================
# Factories
# =============================================================================


def create_backend(config: Settings | None = None) -> IStorageBackend:
    """Build the backend selected by settings.

    Args:
        config: Settings to use (defaults to the global settings)

    Returns:
        Ready-to-use backend; SQLite backends are already initialized
    """
    config = config or settings
    quota = config.storage_quota_bytes if config.quota_enabled else None

    if config.storage_backend == StorageBackendKind.MEMORY:
        return MemoryBackend(quota_bytes=quota)

    from waypointdb.database import SQLiteBackend

    backend = SQLiteBackend(config.database_path, quota_bytes=quota)
    backend.initialize()
    return backend


def create_store(config: Settings | None = None) -> Store:
    """Build a store over the backend selected by settings."""
    config = config or settings
    return Store(create_backend(config), prefix=config.storage_key_prefix)


__all__ = [
    "Bucket",
    "DATA_BUCKETS",
    "MemoryBackend",
    "Store",
    "create_backend",
    "create_store",
]
