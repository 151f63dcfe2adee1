"""Generic repository pattern for type-safe bucket operations.

This module provides a Generic Repository[T] over one store bucket, giving
type-safe CRUD for any persisted Pydantic model.

Every call reads the current bucket, applies its change and writes the bucket
back. There is no caching between calls, so the last writer wins per call and
fields untouched by a later writer keep the value an earlier writer persisted.
Rows that fail model validation are skipped on read (and logged) but are
written back untouched, so a single bad row never takes its neighbours down.

Example:
    >>> from waypointdb.repository import Repository
    >>> from waypointdb.models import AchievementRecord
    >>> from waypointdb.storage import Bucket
    >>>
    >>> repo = Repository[AchievementRecord](store, Bucket.ACHIEVEMENTS, AchievementRecord)
    >>> record = repo.get("a1f0...")
    >>> records = repo.find_by(item_id="5c2e...")
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from waypointdb.logging import logger
from waypointdb.storage import Bucket, Store

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=BaseModel)


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Generic repository for models stored as a JSON list.

    Type Parameter:
        T: Pydantic model with an ``id`` field

    Args:
        store: Bucket store
        bucket: Bucket holding the rows
        model: Model class used to parse rows
    """

    def __init__(self, store: Store, bucket: Bucket, model: type[T]):
        self.store = store
        self.bucket = bucket
        self.model = model
        self.last_read_payload: str | None = None
        self.last_payload: str | None = None

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def parse(self, rows: Iterable[dict[str, Any]]) -> list[T]:
        """Parse raw rows, skipping (and logging) malformed ones."""
        entities = []
        for row in rows:
            try:
                entities.append(self.model.model_validate(row))
            except PydanticValidationError as e:
                logger.warning(
                    f"Skipping malformed {self.model.__name__} row "
                    f"{row.get('id', '<no id>')!r}: {e.error_count()} error(s)"
                )
        return entities

    @staticmethod
    def dump(entity: T) -> dict[str, Any]:
        return entity.model_dump(mode="json")

    def _rows(self) -> list[dict[str, Any]]:
        self.last_read_payload = self.store.read_raw(self.bucket)
        return self.store.parse_rows(self.bucket, self.last_read_payload)

    def _write(self, rows: list[dict[str, Any]]) -> str:
        self.last_payload = self.store.write_rows(self.bucket, rows)
        return self.last_payload

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, entity_id: str) -> T | None:
        """Get entity by ID.

        Args:
            entity_id: Entity identifier

        Returns:
            Entity instance or None if not found
        """
        for entity in self.get_all():
            if getattr(entity, "id") == entity_id:
                return entity
        return None

    def get_all(self) -> list[T]:
        """Get every well-formed entity in storage order."""
        return self.parse(self._rows())

    def find_by(self, **filters: Any) -> list[T]:
        """Find entities whose attributes equal the given values.

        Example:
            >>> repo.find_by(item_id="5c2e...", owner_id=None)
        """
        return [
            entity
            for entity in self.get_all()
            if all(getattr(entity, key, None) == value for key, value in filters.items())
        ]

    def filter(self, predicate: Callable[[T], bool]) -> list[T]:
        """Find entities matching an arbitrary predicate."""
        return [entity for entity in self.get_all() if predicate(entity)]

    def count(self) -> int:
        return len(self.get_all())

    def exists(self, entity_id: str) -> bool:
        return self.get(entity_id) is not None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, entity: T) -> T:
        """Append a new entity.

        Returns:
            The stored entity
        """
        rows = self._rows()
        rows.append(self.dump(entity))
        self._write(rows)
        return entity

    def update(self, entity: T) -> T | None:
        """Replace the stored row with the same ID.

        Returns:
            The stored entity, or None if no row has that ID
        """
        updated = self.update_many([entity])
        return updated[0] if updated else None

    def update_many(self, entities: Sequence[T]) -> list[T]:
        """Replace several rows in a single write.

        Returns:
            The entities that matched an existing row
        """
        replacements = {getattr(entity, "id"): entity for entity in entities}
        rows = self._rows()
        written: list[T] = []
        for index, row in enumerate(rows):
            entity = replacements.get(row.get("id"))
            if entity is not None:
                rows[index] = self.dump(entity)
                written.append(entity)
        if written:
            self._write(rows)
        return written

    def delete(self, entity_id: str) -> bool:
        """Delete entity by ID.

        Returns:
            True if deleted, False if not found
        """
        return bool(self.delete_many([entity_id]))

    def delete_many(self, entity_ids: Iterable[str]) -> list[str]:
        """Delete several rows in a single write.

        Returns:
            IDs that were actually removed
        """
        targets = set(entity_ids)
        rows = self._rows()
        kept = [row for row in rows if row.get("id") not in targets]
        removed = [row["id"] for row in rows if row.get("id") in targets]
        if removed:
            self._write(kept)
        return removed

    def replace_all(self, entities: Sequence[T]) -> str:
        """Overwrite the bucket with exactly ``entities``."""
        return self._write([self.dump(entity) for entity in entities])


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["Repository"]
