"""User profile and preferences.

The profile lives in a single object bucket. Until an account is migrated it
belongs to the placeholder ``"local-user"``. Reads never fail: a missing or
unreadable profile falls back to defaults with a warning. Writes are
validated strictly.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from waypointdb.logging import logger
from waypointdb.models import ItemKind, UserPreferences, UserProfile
from waypointdb.storage import Bucket, Store
from waypointdb.utils import utc_now
from waypointdb.validation import validate_input


def default_profile() -> UserProfile:
    """Build the local, unauthenticated profile."""
    now = utc_now()
    return UserProfile(created_at=now, updated_at=now)


class ProfileManager:
    """Read and update the stored :class:`UserProfile`.

    Args:
        store: Bucket store
    """

    def __init__(self, store: Store):
        self.store = store

    def get(self) -> UserProfile:
        """Get the stored profile, or the default local one.

        Unreadable preferences are replaced with defaults; an unreadable
        profile is replaced entirely.
        """
        data = self.store.read_object(Bucket.USER)
        if data is None:
            return default_profile()

        try:
            return UserProfile.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Stored profile is invalid ({e.error_count()} error(s)); using default preferences")

        try:
            return UserProfile.model_validate({k: v for k, v in data.items() if k != "preferences"})
        except PydanticValidationError:
            logger.warning("Stored profile is unreadable; using the default local profile")
            return default_profile()

    def save(self, profile: UserProfile) -> UserProfile:
        self.store.write_object(Bucket.USER, profile.model_dump(mode="json"))
        return profile

    def update_preferences(self, **changes: Any) -> UserProfile:
        """Merge preference changes into the stored profile.

        ``default_point_values`` may be given partially; missing kinds keep
        their current value.

        Example:
            >>> manager.update_preferences(theme="dark", default_point_values={"step": 10})

        Raises:
            ValidationError: If the merged preferences are invalid
        """
        profile = self.get()
        merged = profile.preferences.model_dump()
        for key, value in changes.items():
            if key == "default_point_values" and isinstance(value, Mapping):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value

        preferences = validate_input(UserPreferences, merged, entity="preferences")
        updated = profile.model_copy(update={"preferences": preferences, "updated_at": utc_now()})
        logger.info(f"Updated preferences: {', '.join(sorted(changes))}")
        return self.save(updated)

    def default_points(self) -> dict[ItemKind, int]:
        """Current kind -> default points table."""
        return self.get().preferences.default_point_values.as_table()

    def daily_baseline(self) -> int:
        return self.get().preferences.daily_baseline

    def assign_owner(
        self,
        owner_id: str,
        email: str | None = None,
        display_name: str | None = None,
    ) -> UserProfile:
        """Attach the local profile to a remote account after migration."""
        profile = self.get()
        update: dict[str, Any] = {"id": owner_id, "updated_at": utc_now()}
        if email is not None:
            update["email"] = email
        if display_name is not None:
            update["display_name"] = display_name
        return self.save(profile.model_copy(update=update))


__all__ = ["ProfileManager", "default_profile"]
