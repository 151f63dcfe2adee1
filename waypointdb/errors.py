"""Exception taxonomy for WaypointDB.

Not-found conditions are not exceptions: repository lookups return ``None`` and
group operations return zero-count results. Migration conflicts are data
(:class:`waypointdb.models.ConflictRecord`), never raised.
"""

from dataclasses import dataclass, field


class WaypointError(Exception):
    """Base class for all WaypointDB errors."""


@dataclass(frozen=True)
class FieldIssue:
    """A single failed field constraint.

    Attributes:
        field: Dotted path of the offending field (e.g. ``"text"``,
            ``"default_point_values.step"``)
        constraint: Machine-readable constraint name (e.g. ``"string_too_long"``)
        message: Human-readable explanation
    """

    field: str
    constraint: str
    message: str


class ValidationError(WaypointError):
    """Malformed input rejected before it reaches the store.

    Attributes:
        entity: Name of the entity being validated
        issues: Every failed field constraint
    """

    def __init__(self, entity: str, issues: list[FieldIssue]):
        self.entity = entity
        self.issues = list(issues)
        details = "; ".join(f"{i.field}: {i.message}" for i in self.issues)
        super().__init__(f"Invalid {entity}: {details}")

    @property
    def fields(self) -> list[str]:
        """Names of the offending fields, in reporting order."""
        return [issue.field for issue in self.issues]

    def for_field(self, name: str) -> list[FieldIssue]:
        """Get the issues reported for a single field."""
        return [issue for issue in self.issues if issue.field == name]


class CapacityExceededError(WaypointError):
    """A write was rejected because the persistent medium is full.

    Attributes:
        key: Storage key being written
        required_bytes: Total bytes the store would hold after the write
        quota_bytes: Configured capacity, when known
    """

    def __init__(
        self,
        key: str,
        required_bytes: int | None = None,
        quota_bytes: int | None = None,
    ):
        self.key = key
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes
        message = f"Storage quota exceeded while writing '{key}'. Please clear some data."
        if required_bytes is not None and quota_bytes is not None:
            message += f" ({required_bytes} bytes needed, quota is {quota_bytes})"
        super().__init__(message)


@dataclass(frozen=True)
class ConsistencyIssue:
    """A named data-integrity violation found during migration."""

    code: str
    message: str


@dataclass(eq=False)
class ConsistencyError(WaypointError):
    """Migration-time invariant violation; aborts the pipeline.

    Attributes:
        stage: Pipeline stage that detected the problem
        issues: Named violations
    """

    stage: str
    issues: list[ConsistencyIssue] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(str(self))

    def __str__(self) -> str:
        details = ", ".join(issue.message for issue in self.issues) or "unknown error"
        return f"Consistency check failed during {self.stage}: {details}"

    @property
    def codes(self) -> list[str]:
        """Codes of every reported issue."""
        return [issue.code for issue in self.issues]


class MigrationStateError(WaypointError):
    """An illegal migration status transition was requested."""


class MigrationInProgressError(MigrationStateError):
    """A migration for the same account is already running."""


class MigrationAlreadyCompletedError(MigrationStateError):
    """The account was already migrated; re-runs are blocked."""


__all__ = [
    "WaypointError",
    "FieldIssue",
    "ValidationError",
    "CapacityExceededError",
    "ConsistencyIssue",
    "ConsistencyError",
    "MigrationStateError",
    "MigrationInProgressError",
    "MigrationAlreadyCompletedError",
]
