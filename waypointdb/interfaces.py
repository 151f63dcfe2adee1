"""Protocol interfaces for dependency injection.

This module defines the Protocol interfaces the store depends on. Using
@runtime_checkable Protocol allows structural subtyping without inheritance,
so tests can pass in-memory fakes and deployments can pass SQLite or a
remote service client.

Example:
    >>> from waypointdb.interfaces import IStorageBackend
    >>> class DictBackend:
    ...     def __init__(self): self.data = {}
    ...     def get(self, key): return self.data.get(key)
    ...     def set(self, key, value): self.data[key] = value
    ...     def remove(self, key): self.data.pop(key, None)
    ...     def keys(self): return list(self.data)
    >>> isinstance(DictBackend(), IStorageBackend)
    True
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from waypointdb.models import AchievementRecord, DailyBaselineRecord, Item


@runtime_checkable
class IStorageBackend(Protocol):
    """Persistent key-value medium holding serialized buckets.

    Values are opaque strings. A missing key reads as ``None``. Writes that
    exceed the medium's capacity must raise
    :class:`~waypointdb.errors.CapacityExceededError` and leave the previous
    value in place.
    """

    def get(self, key: str) -> str | None:
        """Read the value stored under ``key`` or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises:
            CapacityExceededError: If the medium cannot hold the new value
        """
        ...

    def remove(self, key: str) -> None:
        """Delete ``key``; removing an absent key is a no-op."""
        ...

    def keys(self) -> list[str]:
        """List every stored key."""
        ...


@runtime_checkable
class IRemoteStore(Protocol):
    """Remote account store targeted by migration.

    Implementations upsert by primary key; re-sending an id overwrites the
    remote row.
    """

    def list_items(self, owner_id: str) -> list[Item]:
        """Get every item (including soft-deleted ones) owned by ``owner_id``."""
        ...

    def bulk_upsert(
        self,
        owner_id: str,
        items: Sequence[Item],
        achievements: Sequence[AchievementRecord],
        daily_baselines: Sequence[DailyBaselineRecord],
    ) -> None:
        """Insert or replace rows for ``owner_id`` in one call.

        Raises:
            Exception: Any transport failure; migration records it and fails
        """
        ...


__all__ = ["IStorageBackend", "IRemoteStore"]
