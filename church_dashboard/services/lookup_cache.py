"""Per-level cache of lookup options, keyed by the parent selection."""

from __future__ import annotations

from church_dashboard.core.logging import get_logger
from church_dashboard.models.pagination import Option

logger = get_logger(__name__)

ROOT_PARENT: str | None = None
_ALL = object()


class LookupCache:
    """Options already fetched for `(level_id, parent_value)`.

    Root levels are cached under `ROOT_PARENT`. A blank parent value is never
    a hit, and entries are only ever replaced or discarded, never merged.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str | None], tuple[Option, ...]] = {}

    def get(self, level_id: str, parent_value: str | None) -> list[Option] | None:
        if parent_value == "":
            return None
        entry = self._entries.get((level_id, parent_value))
        if entry is None:
            return None
        logger.debug(f"Lookup cache hit for {level_id} (parent={parent_value})")
        return list(entry)

    def put(self, level_id: str, parent_value: str | None, options: list[Option]) -> None:
        if parent_value == "":
            raise ValueError(f"Refusing to cache {level_id} options for a blank parent")
        self._entries[(level_id, parent_value)] = tuple(options)

    def discard(self, level_id: str, parent_value: object = _ALL) -> int:
        """Drop cached options for a level (one parent value, or all of them).

        Returns:
            Number of entries removed.
        """
        if parent_value is _ALL:
            keys = [key for key in self._entries if key[0] == level_id]
        else:
            keys = [key for key in self._entries if key == (level_id, parent_value)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: tuple[str, str | None]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
