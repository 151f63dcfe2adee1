"""SQLite storage backend for WaypointDB.

This module provides the durable key-value medium behind the store:
- One ``storage_entries`` table holding serialized buckets by key
- Connection management with WAL mode
- Optional byte quota so a full medium fails the same way everywhere
- SQLite "disk full" errors mapped to ``CapacityExceededError``

Each call opens a short-lived session, so a read always observes what another
process or execution context last committed.

Example:
    >>> from waypointdb.database import SQLiteBackend
    >>>
    >>> backend = SQLiteBackend()
    >>> backend.initialize()
    >>> backend.set("waypoint:items", "[]")
    >>> backend.get("waypoint:items")
    '[]'
    >>> backend.close()
"""

from pathlib import Path

from sqlalchemy import LargeBinary, cast, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from waypointdb.config import settings
from waypointdb.errors import CapacityExceededError
from waypointdb.logging import logger
from waypointdb.utils import format_iso, utc_now

# =============================================================================
# Table Definition
# =============================================================================


class StorageEntry(SQLModel, table=True):
    """A single serialized bucket.

    Attributes:
        key: Bucket key (e.g. ``waypoint:items``)
        value: Serialized JSON payload
        updated_at: ISO8601 timestamp of the last write
    """

    __tablename__ = "storage_entries"

    key: str = Field(primary_key=True)
    value: str
    updated_at: str


def _byte_length(column):
    return func.length(cast(column, LargeBinary))


# =============================================================================
# SQLite Backend
# =============================================================================


class SQLiteBackend:
    """Key-value backend persisted in a SQLite file.

    Args:
        database_path: Path to SQLite database file (defaults to settings.database_path)
        quota_bytes: Maximum bytes across all keys and values; None disables the check

    Example:
        >>> backend = SQLiteBackend(Path("/tmp/waypoint.db"), quota_bytes=1024)
        >>> backend.initialize()
        >>> backend.set("waypoint:user", "{}")
        >>> backend.keys()
        ['waypoint:user']
    """

    def __init__(self, database_path: Path | None = None, quota_bytes: int | None = None):
        self.database_path = database_path or settings.database_path
        self.quota_bytes = quota_bytes
        self.engine: Engine | None = None

    def initialize(self) -> None:
        """Initialize database engine and create the storage table.

        This method:
        1. Creates the database file if it doesn't exist
        2. Creates the ``storage_entries`` table
        3. Enables WAL mode and tunes PRAGMA settings
        """
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{self.database_path}",
            echo=False,
            connect_args={"check_same_thread": False},
        )

        SQLModel.metadata.create_all(self.engine, tables=[StorageEntry.__table__])

        with self.engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode = WAL;")
            conn.exec_driver_sql("PRAGMA synchronous = NORMAL;")
            conn.exec_driver_sql("PRAGMA temp_store = MEMORY;")
            conn.commit()

        logger.info(f"✅ Storage initialized at {self.database_path}")

    def close(self) -> None:
        """Dispose of the engine and its connections."""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise RuntimeError("Database not initialized")
        return self.engine

    # =========================================================================
    # Key-Value Operations
    # =========================================================================

    def get(self, key: str) -> str | None:
        with Session(self._require_engine()) as session:
            entry = session.get(StorageEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``.

        Raises:
            CapacityExceededError: If the quota would be exceeded or SQLite
                reports the disk as full. The previous value is kept.
        """
        with Session(self._require_engine()) as session:
            if self.quota_bytes is not None:
                required = self._bytes_excluding(session, key) + len(key.encode()) + len(value.encode())
                if required > self.quota_bytes:
                    raise CapacityExceededError(key, required, self.quota_bytes)

            entry = session.get(StorageEntry, key)
            if entry:
                entry.value = value
                entry.updated_at = format_iso(utc_now())
            else:
                entry = StorageEntry(key=key, value=value, updated_at=format_iso(utc_now()))
            session.add(entry)

            try:
                session.commit()
            except OperationalError as e:
                session.rollback()
                if "full" in str(e).lower():
                    raise CapacityExceededError(key) from e
                raise

    def remove(self, key: str) -> None:
        with Session(self._require_engine()) as session:
            entry = session.get(StorageEntry, key)
            if entry:
                session.delete(entry)
                session.commit()

    def keys(self) -> list[str]:
        with Session(self._require_engine()) as session:
            return list(session.exec(select(StorageEntry.key).order_by(StorageEntry.key)).all())

    def used_bytes(self) -> int:
        """Total bytes held across all keys and values."""
        with Session(self._require_engine()) as session:
            return self._bytes_excluding(session, None)

    @staticmethod
    def _bytes_excluding(session: Session, key: str | None) -> int:
        stmt = select(
            func.coalesce(
                func.sum(_byte_length(StorageEntry.key) + _byte_length(StorageEntry.value)),
                0,
            )
        )
        if key is not None:
            stmt = stmt.where(StorageEntry.key != key)
        return int(session.exec(stmt).one())


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["StorageEntry", "SQLiteBackend"]
