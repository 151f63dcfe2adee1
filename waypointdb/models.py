"""Data models for WaypointDB.

This module defines the Pydantic models used throughout the store. Persisted
entities are immutable; mutations produce copies via ``model_copy``.

Models are organized into four sections:
1. Persisted entities (items, achievements, daily baselines, user profile)
2. Input models validated at the repository boundary
3. Read-side views produced by the auto-link engine
4. Migration models (snapshot, conflicts, status tracking)
"""

from datetime import date, datetime
from enum import StrEnum
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_serializer,
    model_validator,
)
from pydantic_core import PydanticCustomError

from waypointdb.utils import is_valid_id, parse_datetime, to_calendar_date

# =============================================================================
# Constants and Enumerations
# =============================================================================

MAX_TEXT_LENGTH = 5000
LOCAL_USER_ID = "local-user"
DEFAULT_DAILY_BASELINE = 10
SNAPSHOT_VERSION = 1


class ItemKind(StrEnum):
    """Item tier; determines the default point value."""

    DIRECTION = "direction"
    WAYPOINT = "waypoint"
    STEP = "step"


DEFAULT_POINTS: dict[ItemKind, int] = {
    ItemKind.DIRECTION: 100,
    ItemKind.WAYPOINT: 25,
    ItemKind.STEP: 5,
}


class Theme(StrEnum):
    """UI theme preference."""

    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


class MigrationState(StrEnum):
    """Lifecycle state of a migration for one account."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ConflictType(StrEnum):
    """Reason a local item collides with a remote one."""

    ID_MATCH = "id_match"
    TEXT_MATCH = "text_match"


class ConflictStrategy(StrEnum):
    """Batch-wide conflict resolution strategy.

    Attributes:
        KEEP_LOCAL: Local version overwrites the remote one
        KEEP_CLOUD: Remote version wins; the local copy is discarded
        KEEP_BOTH: Both survive (local copy re-keyed on an id collision)
        KEEP_NEWEST: Most recent ``updated_at`` wins; ties favour remote
        MANUAL_REVIEW: Nothing is resolved automatically
    """

    KEEP_LOCAL = "keep_local"
    KEEP_CLOUD = "keep_cloud"
    KEEP_BOTH = "keep_both"
    KEEP_NEWEST = "keep_newest"
    MANUAL_REVIEW = "manual_review"


def _coerce_datetime(value: Any) -> Any:
    # Non-string garbage is left for pydantic to reject
    if isinstance(value, (str, datetime)):
        return parse_datetime(value)
    return value


def _uuid_or_none(value: Any, message: str) -> Any:
    if value is not None and not is_valid_id(value):
        raise PydanticCustomError("uuid", message)
    return value


# =============================================================================
# Section 1: Persisted Entities
# =============================================================================


class Item(BaseModel):
    """A trackable Direction, Waypoint or Step.

    Attributes:
        id: Unique identifier (UUID string), immutable
        owner_id: Owning account; None means local and unauthenticated
        text: Item content, also the auto-link key
        kind: Item tier
        parent_id: Parent item, None for roots
        position: Sort order among siblings
        completed: Completion flag
        completed_at: Set exactly when ``completed`` is true
        points: Point value, defaulted from ``kind``
        deleted_at: Soft-delete timestamp
        created_at: Creation timestamp (UTC)
        updated_at: Last mutation timestamp (UTC)
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    owner_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("owner_id", "user_id")
    )
    text: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    kind: ItemKind = Field(validation_alias=AliasChoices("kind", "type"))
    parent_id: Optional[str] = None
    position: int = Field(default=0, ge=0)
    completed: bool = False
    completed_at: Optional[datetime] = None
    points: int = Field(ge=0)
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("completed_at", "deleted_at", "created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_timestamps(cls, v: Any) -> Optional[datetime]:
        return _coerce_datetime(v)

    @model_validator(mode="after")
    def _check_completion(self) -> "Item":
        if self.completed != (self.completed_at is not None):
            raise ValueError("completed_at must be set exactly when completed is true")
        return self

    @property
    def is_deleted(self) -> bool:
        """Check if the item is soft-deleted."""
        return self.deleted_at is not None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class AchievementRecord(BaseModel):
    """Ledger row written when an item's completion flips to true.

    ``points_earned`` is captured by value; later edits to the item never
    change it.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    owner_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("owner_id", "user_id")
    )
    item_id: str
    points_earned: int = Field(ge=0)
    achieved_at: datetime
    created_at: datetime

    @field_validator("achieved_at", "created_at", mode="before")
    @classmethod
    def _coerce_timestamps(cls, v: Any) -> Optional[datetime]:
        return _coerce_datetime(v)

    @property
    def achieved_on(self) -> date:
        """UTC calendar date of the achievement."""
        return self.achieved_at.date()


class DailyBaselineRecord(BaseModel):
    """Baseline points granted for one (owner, calendar date)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    owner_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("owner_id", "user_id")
    )
    date: date
    baseline_points: int = Field(default=DEFAULT_DAILY_BASELINE, ge=0)
    created_at: datetime

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, v: Any) -> Any:
        if isinstance(v, (str, date)):
            return to_calendar_date(v)
        return v

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Any) -> Optional[datetime]:
        return _coerce_datetime(v)


class DefaultPointValues(BaseModel):
    """Per-kind default point table."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    direction: int = Field(default=DEFAULT_POINTS[ItemKind.DIRECTION], ge=0, strict=True)
    waypoint: int = Field(default=DEFAULT_POINTS[ItemKind.WAYPOINT], ge=0, strict=True)
    step: int = Field(default=DEFAULT_POINTS[ItemKind.STEP], ge=0, strict=True)

    def for_kind(self, kind: ItemKind) -> int:
        """Get the default points for an item kind."""
        return getattr(self, ItemKind(kind).value)

    def as_table(self) -> dict[ItemKind, int]:
        return {kind: self.for_kind(kind) for kind in ItemKind}


class UserPreferences(BaseModel):
    """Typed, versioned user preferences.

    Unknown keys are rejected. Camel-case keys written by older clients
    (``defaultPointValues``, ``dailyBaseline``) are accepted on input.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: Literal[1] = 1
    default_point_values: DefaultPointValues = Field(
        default_factory=DefaultPointValues,
        validation_alias=AliasChoices("default_point_values", "defaultPointValues"),
    )
    theme: Theme = Theme.AUTO
    daily_baseline: int = Field(
        default=DEFAULT_DAILY_BASELINE,
        ge=0,
        strict=True,
        validation_alias=AliasChoices("daily_baseline", "dailyBaseline"),
    )


class UserProfile(BaseModel):
    """Account record; ``id`` is ``"local-user"`` until migration."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = LOCAL_USER_ID
    email: Optional[str] = None
    display_name: Optional[str] = None
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_timestamps(cls, v: Any) -> Optional[datetime]:
        return _coerce_datetime(v)

    @property
    def is_local(self) -> bool:
        return self.id == LOCAL_USER_ID


# =============================================================================
# Section 2: Input Models
# =============================================================================


class ItemCreate(BaseModel):
    """Input accepted by ``ItemRepository.create``."""

    model_config = ConfigDict(extra="ignore")

    text: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    kind: ItemKind = Field(validation_alias=AliasChoices("kind", "type"))
    parent_id: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0, strict=True)
    points: Optional[int] = Field(default=None, ge=0, strict=True)

    @field_validator("parent_id")
    @classmethod
    def _check_parent_id(cls, v: Optional[str]) -> Optional[str]:
        return _uuid_or_none(v, "Parent ID must be a valid UUID")


class ItemUpdate(BaseModel):
    """Partial update accepted by ``ItemRepository.update``.

    Only explicitly supplied fields are applied; ``parent_id=None`` moves the
    item to the root level.
    """

    model_config = ConfigDict(extra="ignore")

    text: Optional[str] = Field(default=None, min_length=1, max_length=MAX_TEXT_LENGTH)
    kind: Optional[ItemKind] = Field(
        default=None, validation_alias=AliasChoices("kind", "type")
    )
    parent_id: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0, strict=True)
    completed: Optional[bool] = Field(default=None, strict=True)
    points: Optional[int] = Field(default=None, ge=0, strict=True)

    @field_validator("parent_id")
    @classmethod
    def _check_parent_id(cls, v: Optional[str]) -> Optional[str]:
        return _uuid_or_none(v, "Parent ID must be a valid UUID")

    @field_validator("text", "kind", "position", "completed", "points")
    @classmethod
    def _reject_explicit_null(cls, v: Any) -> Any:
        if v is None:
            raise PydanticCustomError("not_nullable", "Field cannot be null")
        return v

    def changes(self) -> dict[str, Any]:
        """Fields explicitly supplied by the caller."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class AchievementCreate(BaseModel):
    """Input accepted by ``AchievementLedger.record_completion``."""

    model_config = ConfigDict(extra="ignore")

    item_id: str
    points_earned: int = Field(ge=0, strict=True)

    @field_validator("item_id")
    @classmethod
    def _check_item_id(cls, v: str) -> str:
        return _uuid_or_none(v, "Item ID must be a valid UUID")


class DailyBaselineInput(BaseModel):
    """Input accepted by the daily baseline tracker."""

    model_config = ConfigDict(extra="ignore")

    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    baseline_points: int = Field(default=DEFAULT_DAILY_BASELINE, ge=0, strict=True)

    @field_validator("date")
    @classmethod
    def _check_calendar_date(cls, v: str) -> str:
        try:
            date.fromisoformat(v)
        except ValueError:
            raise PydanticCustomError("calendar_date", "Date must be a real calendar date") from None
        return v

    @property
    def calendar_date(self) -> date:
        return date.fromisoformat(self.date)


# =============================================================================
# Section 3: Read-side Views
# =============================================================================


class LinkedInstance(BaseModel):
    """Another member of an item's auto-link group."""

    model_config = ConfigDict(frozen=True)

    id: str
    parent_text: str


class EnrichedItem(Item):
    """Item decorated with its auto-link group.

    Both extra fields are None (and left out of dumps) when the item has no
    duplicates.
    """

    linked_instances: Optional[list[LinkedInstance]] = None
    is_canonical: Optional[bool] = None

    @model_serializer(mode="wrap")
    def _drop_empty_links(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        for key in ("linked_instances", "is_canonical"):
            if data.get(key) is None:
                data.pop(key, None)
        return data

    @property
    def is_linked(self) -> bool:
        return self.linked_instances is not None


class GroupOperationResult(BaseModel):
    """Outcome of a group delete or propagated update."""

    model_config = ConfigDict(frozen=True)

    count: int = 0
    item_ids: list[str] = Field(default_factory=list)


# =============================================================================
# Section 4: Migration Models
# =============================================================================


class SnapshotCounts(BaseModel):
    """Declared entity counts inside a snapshot."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    items: int = Field(ge=0)
    achievements: int = Field(ge=0)
    daily_points: int = Field(ge=0, alias="dailyPoints")


class MigrationSnapshot(BaseModel):
    """Full export of the local store.

    Serialized with camel-case envelope keys (``exportedAt``,
    ``dailyPoints``) so backup files stay readable by older clients.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: int = SNAPSHOT_VERSION
    exported_at: datetime = Field(alias="exportedAt")
    items: list[Item] = Field(default_factory=list)
    achievements: list[AchievementRecord] = Field(default_factory=list)
    daily_points: list[DailyBaselineRecord] = Field(
        default_factory=list, alias="dailyPoints"
    )
    user: UserProfile
    counts: SnapshotCounts

    @field_validator("exported_at", mode="before")
    @classmethod
    def _coerce_exported_at(cls, v: Any) -> Optional[datetime]:
        return _coerce_datetime(v)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict using the backup file key names."""
        return self.model_dump(mode="json", by_alias=True)


class ConflictRecord(BaseModel):
    """A local item colliding with a remote item."""

    model_config = ConfigDict(frozen=True)

    local_item: Item
    cloud_item: Item
    conflict_type: ConflictType


class ConflictDetectionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    conflicts: list[ConflictRecord] = Field(default_factory=list)

    @property
    def total_conflicts(self) -> int:
        return len(self.conflicts)

    @property
    def requires_resolution(self) -> bool:
        return bool(self.conflicts)


class ResolutionOutcome(BaseModel):
    """Result of resolving a batch of conflicts.

    Attributes:
        resolved_items: Local items to upload (possibly re-keyed)
        unresolved_conflicts: Conflicts left for manual review
        id_renames: Original local id -> new id for re-keyed local copies
        id_replacements: Discarded local id -> surviving remote id
    """

    model_config = ConfigDict(frozen=True)

    resolved_items: list[Item] = Field(default_factory=list)
    unresolved_conflicts: list[ConflictRecord] = Field(default_factory=list)
    id_renames: dict[str, str] = Field(default_factory=dict)
    id_replacements: dict[str, str] = Field(default_factory=dict)


class MigrationOptions(BaseModel):
    """User choices for a migration run."""

    model_config = ConfigDict(frozen=True)

    conflict_strategy: ConflictStrategy = ConflictStrategy.KEEP_NEWEST
    create_backup: bool = True
    delete_local_after_migration: bool = False


class MigrationResult(BaseModel):
    """Counts and messages from a finished migration."""

    model_config = ConfigDict(frozen=True)

    items_migrated: int = 0
    achievements_migrated: int = 0
    daily_points_migrated: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class MigrationStatusRecord(BaseModel):
    """Persisted migration status for one account."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    migration_id: str
    owner_id: str
    status: MigrationState = MigrationState.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_error: Optional[str] = None
    result: Optional[MigrationResult] = None
    options: MigrationOptions = Field(default_factory=MigrationOptions)

    @field_validator("started_at", "completed_at", mode="before")
    @classmethod
    def _coerce_timestamps(cls, v: Any) -> Optional[datetime]:
        return _coerce_datetime(v)


class MigrationSummary(BaseModel):
    """Human-facing summary of a migration attempt."""

    model_config = ConfigDict(frozen=True)

    status: MigrationState
    items_migrated: int = 0
    achievements_migrated: int = 0
    daily_points_migrated: int = 0
    duration_seconds: Optional[float] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


__all__ = [
    "MAX_TEXT_LENGTH",
    "LOCAL_USER_ID",
    "DEFAULT_DAILY_BASELINE",
    "SNAPSHOT_VERSION",
    "DEFAULT_POINTS",
    "ItemKind",
    "Theme",
    "MigrationState",
    "ConflictType",
    "ConflictStrategy",
    "Item",
    "AchievementRecord",
    "DailyBaselineRecord",
    "DefaultPointValues",
    "UserPreferences",
    "UserProfile",
    "ItemCreate",
    "ItemUpdate",
    "AchievementCreate",
    "DailyBaselineInput",
    "LinkedInstance",
    "EnrichedItem",
    "GroupOperationResult",
    "SnapshotCounts",
    "MigrationSnapshot",
    "ConflictRecord",
    "ConflictDetectionResult",
    "ResolutionOutcome",
    "MigrationOptions",
    "MigrationResult",
    "MigrationStatusRecord",
    "MigrationSummary",
]
