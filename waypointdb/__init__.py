"""WaypointDB - local-first store for directions, waypoints and steps.

This package provides the persistence core of a hierarchical goal tracker:
a bucketed JSON store, validated item and achievement repositories, text
auto-linking between duplicate items, daily point baselines, and a
migration pipeline that moves local data into a remote account without
losing ids or timestamps.

Example:
    >>> from waypointdb import Workspace
    >>>
    >>> workspace = Workspace()
    >>> ship = workspace.create_item({"text": "Ship v1", "kind": "direction"})
    >>> design = workspace.create_item({"text": "Design", "kind": "waypoint", "parent_id": ship.id})
    >>> workspace.set_completed(design.id, True)
    >>> workspace.daily_total()
    25
"""

from waypointdb.autolink import AutoLinkEngine
from waypointdb.baseline import DailyBaselineTracker
from waypointdb.config import settings
from waypointdb.errors import (
    CapacityExceededError,
    ConsistencyError,
    MigrationAlreadyCompletedError,
    MigrationInProgressError,
    MigrationStateError,
    ValidationError,
    WaypointError,
)
from waypointdb.items import ItemRepository
from waypointdb.ledger import AchievementLedger
from waypointdb.models import (
    AchievementRecord,
    ConflictStrategy,
    DailyBaselineRecord,
    EnrichedItem,
    Item,
    ItemKind,
    MigrationOptions,
    UserPreferences,
    UserProfile,
)
from waypointdb.pipeline import MigrationOutcome, MigrationPipeline
from waypointdb.profile import ProfileManager
from waypointdb.remote import InMemoryRemoteStore
from waypointdb.status import MigrationStatusTracker
from waypointdb.storage import Bucket, MemoryBackend, Store, create_store
from waypointdb.workspace import Workspace

__version__ = "0.1.0"

__all__ = [
    # Main components
    "Workspace",
    "Store",
    "MemoryBackend",
    "Bucket",
    "create_store",
    "ItemRepository",
    "AchievementLedger",
    "DailyBaselineTracker",
    "AutoLinkEngine",
    "ProfileManager",
    # Migration
    "MigrationPipeline",
    "MigrationOutcome",
    "MigrationStatusTracker",
    "InMemoryRemoteStore",
    # Configuration
    "settings",
    # Models
    "Item",
    "ItemKind",
    "EnrichedItem",
    "AchievementRecord",
    "DailyBaselineRecord",
    "UserProfile",
    "UserPreferences",
    "MigrationOptions",
    "ConflictStrategy",
    # Errors
    "WaypointError",
    "ValidationError",
    "CapacityExceededError",
    "ConsistencyError",
    "MigrationStateError",
    "MigrationInProgressError",
    "MigrationAlreadyCompletedError",
]
