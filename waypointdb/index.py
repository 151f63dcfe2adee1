"""Case-insensitive text index for auto-link lookups.

The index maps lowercased item text to the active items carrying it. It is
updated incrementally after each write made through the owning repository and
remembers the exact payload it reflects; when the persisted items bucket no
longer matches that payload (another execution context wrote it), the next
lookup rebuilds the index from storage.
"""

from collections.abc import Callable, Iterable

from waypointdb.models import Item
from waypointdb.utils import normalize_text


class TextIndex:
    """Lowercase text -> active items, with storage positions for tie-breaks."""

    def __init__(self) -> None:
        self._groups: dict[str, dict[str, Item]] = {}
        self._text_by_id: dict[str, str] = {}
        self._positions: dict[str, int] = {}
        self._source: str | None = None
        self._built = False
        self.rebuilds = 0

    def __len__(self) -> int:
        return len(self._groups)

    # -------------------------------------------------------------------------
    # Freshness
    # -------------------------------------------------------------------------

    def is_current(self, payload: str | None) -> bool:
        """Check whether the index reflects exactly ``payload``."""
        return self._built and payload == self._source

    def ensure_current(self, payload: str | None, loader: Callable[[], list[Item]]) -> bool:
        """Rebuild from ``loader`` unless the index already reflects ``payload``.

        Returns:
            True if a rebuild happened
        """
        if self.is_current(payload):
            return False
        self.rebuild(loader(), payload)
        return True

    def invalidate(self) -> None:
        """Force a rebuild on the next lookup."""
        self._built = False

    def rebuild(self, items: Iterable[Item], payload: str | None) -> None:
        """Replace the index contents with ``items`` (in storage order)."""
        self._groups.clear()
        self._text_by_id.clear()
        self._positions.clear()
        for position, item in enumerate(items):
            self._positions.setdefault(item.id, position)
            self._put(item)
        self._source = payload
        self._built = True
        self.rebuilds += 1

    # -------------------------------------------------------------------------
    # Incremental maintenance
    # -------------------------------------------------------------------------

    def apply(self, items: Iterable[Item], payload: str) -> None:
        """Record new versions of ``items`` written as ``payload``.

        Creates are appended after every known row; updates, soft deletes and
        restores keep their storage position. An index that was never built
        stays unbuilt.
        """
        if not self._built:
            return
        for item in items:
            self._discard(item.id)
            self._positions.setdefault(item.id, len(self._positions))
            self._put(item)
        self._source = payload

    def _put(self, item: Item) -> None:
        if item.is_deleted:
            return
        key = normalize_text(item.text)
        self._groups.setdefault(key, {})[item.id] = item
        self._text_by_id[item.id] = key

    def _discard(self, item_id: str) -> None:
        key = self._text_by_id.pop(item_id, None)
        if key is None:
            return
        group = self._groups.get(key)
        if group is not None:
            group.pop(item_id, None)
            if not group:
                del self._groups[key]

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def lookup(self, text: str) -> list[Item]:
        """Get active items whose text equals ``text`` ignoring case.

        Returns:
            Items ordered by ``created_at``, ties broken by storage position
        """
        group = self._groups.get(normalize_text(text), {})
        return sorted(
            group.values(),
            key=lambda item: (item.created_at, self._positions.get(item.id, 0)),
        )


__all__ = ["TextIndex"]
