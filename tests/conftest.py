"""Pytest configuration and shared fixtures for WaypointDB tests."""

import os
import sys
import tempfile

# Settings are read at import time; select the testing profile first
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="waypointdb-tests-"))

from datetime import UTC, datetime, timedelta
from typing import Any, Callable

import pytest
from loguru import logger

from waypointdb.models import Item, ItemKind
from waypointdb.storage import MemoryBackend, Store
from waypointdb.utils import generate_id
from waypointdb.workspace import Workspace

# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def backend() -> MemoryBackend:
    """Unbounded in-memory backend."""
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> Store:
    """Store over the in-memory backend."""
    return Store(backend, prefix="waypoint:")


@pytest.fixture
def workspace(store: Store) -> Workspace:
    """Workspace over the in-memory store."""
    return Workspace(store=store)


# =============================================================================
# Data Fixtures
# =============================================================================

BASE_TIME = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)


@pytest.fixture
def make_item() -> Callable[..., Item]:
    """Factory building persisted items with controlled timestamps."""

    def _make(text: str = "Ship v1", kind: ItemKind = ItemKind.DIRECTION, **fields: Any) -> Item:
        created = fields.pop("created_at", BASE_TIME)
        data: dict[str, Any] = {
            "id": generate_id(),
            "text": text,
            "kind": kind,
            "points": 100,
            "created_at": created,
            "updated_at": fields.pop("updated_at", created),
        }
        data.update(fields)
        return Item(**data)

    return _make


@pytest.fixture
def days() -> Callable[[int], datetime]:
    """Offset from the fixed base time, in days."""

    def _offset(count: int) -> datetime:
        return BASE_TIME + timedelta(days=count)

    return _offset
