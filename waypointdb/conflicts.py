"""Conflict detection and resolution for migration.

A local item conflicts with the remote store when the remote already holds
the same id (``id_match``) or, failing that, an item with the same text after
lowercasing and trimming (``text_match``, against the oldest remote match).
Each local item is classified at most once.

Conflicts are data: nothing here raises for a conflict. One strategy is
applied to the whole batch.
"""

from collections.abc import Callable, Sequence

from waypointdb.models import (
    ConflictDetectionResult,
    ConflictRecord,
    ConflictStrategy,
    ConflictType,
    Item,
    ResolutionOutcome,
)
from waypointdb.utils import generate_id, normalize_text

SECONDS_PER_DAY = 24 * 60 * 60


def detect_conflicts(local_items: Sequence[Item], remote_items: Sequence[Item]) -> ConflictDetectionResult:
    """Classify local items against the remote store.

    Args:
        local_items: Items about to be uploaded
        remote_items: Items the account already holds remotely

    Returns:
        Conflicts in local item order
    """
    remote_by_id = {item.id: item for item in remote_items}
    remote_by_text: dict[str, list[Item]] = {}
    for item in remote_items:
        remote_by_text.setdefault(normalize_text(item.text, strip=True), []).append(item)

    conflicts = []
    for local in local_items:
        cloud = remote_by_id.get(local.id)
        if cloud is not None:
            conflicts.append(ConflictRecord(local_item=local, cloud_item=cloud, conflict_type=ConflictType.ID_MATCH))
            continue

        matches = remote_by_text.get(normalize_text(local.text, strip=True))
        if matches:
            canonical = min(matches, key=lambda item: item.created_at)
            conflicts.append(
                ConflictRecord(local_item=local, cloud_item=canonical, conflict_type=ConflictType.TEXT_MATCH)
            )

    return ConflictDetectionResult(conflicts=conflicts)


def resolve_conflict(
    conflict: ConflictRecord,
    strategy: ConflictStrategy,
    id_factory: Callable[[], str] = generate_id,
) -> list[Item]:
    """Resolve a single conflict.

    Returns:
        Local items to upload for this conflict (empty when the remote
        version wins or the conflict awaits manual review). Under
        ``keep_both`` an id collision yields the local item re-keyed with a
        fresh id.

    Raises:
        ValueError: For an unknown strategy
    """
    local, cloud = conflict.local_item, conflict.cloud_item
    strategy = ConflictStrategy(strategy)

    if strategy == ConflictStrategy.KEEP_LOCAL:
        return [local]
    if strategy == ConflictStrategy.KEEP_CLOUD:
        return []
    if strategy == ConflictStrategy.KEEP_BOTH:
        if conflict.conflict_type == ConflictType.ID_MATCH:
            return [local.model_copy(update={"id": id_factory()})]
        return [local]
    if strategy == ConflictStrategy.KEEP_NEWEST:
        return [local] if local.updated_at > cloud.updated_at else []
    if strategy == ConflictStrategy.MANUAL_REVIEW:
        return []
    raise ValueError(f"Unknown conflict strategy: {strategy}")


def resolve_all(
    conflicts: Sequence[ConflictRecord],
    strategy: ConflictStrategy,
    id_factory: Callable[[], str] = generate_id,
) -> ResolutionOutcome:
    """Resolve a batch of conflicts with one strategy.

    Besides the items to upload, the outcome records how references to local
    ids must be rewritten: re-keyed local copies (``id_renames``) and local
    text duplicates dropped in favour of a remote item (``id_replacements``).
    """
    if strategy == ConflictStrategy.MANUAL_REVIEW:
        return ResolutionOutcome(unresolved_conflicts=list(conflicts))

    resolved: list[Item] = []
    renames: dict[str, str] = {}
    replacements: dict[str, str] = {}
    for conflict in conflicts:
        kept = resolve_conflict(conflict, strategy, id_factory)
        local = conflict.local_item
        for item in kept:
            if item.id != local.id:
                renames[local.id] = item.id
        if not kept and conflict.conflict_type == ConflictType.TEXT_MATCH:
            replacements[local.id] = conflict.cloud_item.id
        resolved.extend(kept)

    return ResolutionOutcome(resolved_items=resolved, id_renames=renames, id_replacements=replacements)


def merge_item_versions(local: Item, cloud: Item) -> Item:
    """Merge two versions of an item; the more recently updated one wins.

    Ties favour the remote version.
    """
    if local.updated_at > cloud.updated_at:
        return cloud.model_copy(update=dict(local))
    return local.model_copy(update=dict(cloud))


def describe_conflict(conflict: ConflictRecord) -> str:
    """Human-readable description of a conflict.

    Example:
        >>> describe_conflict(conflict)
        'Item "Design" exists in both local and cloud storage (created 3 days apart)'
    """
    local, cloud = conflict.local_item, conflict.cloud_item
    if conflict.conflict_type == ConflictType.ID_MATCH:
        days = int(abs((local.updated_at - cloud.updated_at).total_seconds()) // SECONDS_PER_DAY)
        detail = f"with the same ID (updated {days} day{'s' if days != 1 else ''} apart)"
    else:
        days = int(abs((local.created_at - cloud.created_at).total_seconds()) // SECONDS_PER_DAY)
        detail = f"(created {days} day{'s' if days != 1 else ''} apart)"
    return f'Item "{local.text}" exists in both local and cloud storage {detail}'


def filter_non_conflicting(local_items: Sequence[Item], conflicts: Sequence[ConflictRecord]) -> list[Item]:
    """Local items not involved in any conflict."""
    conflicted = {conflict.local_item.id for conflict in conflicts}
    return [item for item in local_items if item.id not in conflicted]


__all__ = [
    "detect_conflicts",
    "resolve_conflict",
    "resolve_all",
    "merge_item_versions",
    "describe_conflict",
    "filter_non_conflicting",
]
