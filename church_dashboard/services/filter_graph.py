"""Cascading filter levels (Branch -> Department -> Unit) with debounced lookups."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from church_dashboard.core.logging import get_logger
from church_dashboard.core.settings import get_settings
from church_dashboard.models.pagination import Option
from church_dashboard.services.endpoints import LookupEndpoint
from church_dashboard.services.errors import ListCoreError, LookupLoadFailure
from church_dashboard.services.lookup_cache import ROOT_PARENT, LookupCache
from church_dashboard.utils.debounce import Debouncer, Scheduler
from church_dashboard.utils.error_logger import log_error

logger = get_logger(__name__)


@dataclass(frozen=True)
class FilterLevelSpec:
    """Declaration of one filter level.

    Attributes:
        id: Level identifier ("branch", "department", ...).
        param: Criteria key the selection is sent as ("branchId", ...).
        lookup: Endpoint that lists this level's options.
        parent_level_id: Level whose selection scopes these options.
    """

    id: str
    param: str
    lookup: LookupEndpoint
    parent_level_id: str | None = None


@dataclass
class FilterLevel:
    id: str
    param: str
    parent_level_id: str | None = None
    selected_value: str | None = None
    options: list[Option] = field(default_factory=list)
    loaded: bool = False
    loading: bool = False
    error: str | None = None


def _normalize_selection(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class FilterGraph:
    """Ordered filter levels where a parent selection scopes its children.

    Changing a level's selection synchronously clears every descendant and
    schedules a debounced reload of the immediate children.
    """

    def __init__(
        self,
        specs: Iterable[FilterLevelSpec],
        *,
        cache: LookupCache | None = None,
        debounce_seconds: float | None = None,
        scheduler: Scheduler | None = None,
        on_change: Callable[[FilterLevel], None] | None = None,
    ) -> None:
        if debounce_seconds is None:
            debounce_seconds = get_settings().lookup_debounce_seconds

        self._levels: dict[str, FilterLevel] = {}
        self._lookups: dict[str, LookupEndpoint] = {}
        self._children: dict[str, list[str]] = {}
        self._generation: dict[str, int] = {}

        for spec in specs:
            if spec.id in self._levels:
                raise ValueError(f"Duplicate filter level: {spec.id}")
            if spec.parent_level_id is not None and spec.parent_level_id not in self._levels:
                raise ValueError(
                    f"Filter level {spec.id} must be declared after its parent {spec.parent_level_id}"
                )
            self._levels[spec.id] = FilterLevel(
                id=spec.id, param=spec.param, parent_level_id=spec.parent_level_id
            )
            self._lookups[spec.id] = spec.lookup
            self._children[spec.id] = []
            self._generation[spec.id] = 0
            if spec.parent_level_id is not None:
                self._children[spec.parent_level_id].append(spec.id)

        self._cache = cache or LookupCache()
        self._debouncer = Debouncer(debounce_seconds, scheduler)
        self._on_change = on_change

    @property
    def levels(self) -> list[FilterLevel]:
        return list(self._levels.values())

    @property
    def cache(self) -> LookupCache:
        return self._cache

    def level(self, level_id: str) -> FilterLevel:
        try:
            return self._levels[level_id]
        except KeyError:
            raise KeyError(f"Unknown filter level: {level_id}") from None

    def parent_of(self, level_id: str) -> FilterLevel | None:
        parent_id = self.level(level_id).parent_level_id
        return self._levels[parent_id] if parent_id is not None else None

    def children(self, level_id: str) -> list[str]:
        self.level(level_id)
        return list(self._children[level_id])

    def descendants(self, level_id: str) -> list[str]:
        """All levels below `level_id`, nearest first."""
        found: list[str] = []
        queue = self.children(level_id)
        while queue:
            current = queue.pop(0)
            found.append(current)
            queue.extend(self._children[current])
        return found

    def selections(self) -> dict[str, str]:
        """Criteria params for every level with a selection."""
        return {
            level.param: level.selected_value
            for level in self._levels.values()
            if level.selected_value
        }

    def select_value(self, level_id: str, value: str | None, *, schedule: bool = True) -> None:
        level = self.level(level_id)
        value = _normalize_selection(value)
        if value == level.selected_value:
            return

        logger.debug(f"Filter {level_id}: {level.selected_value!r} -> {value!r}")
        level.selected_value = value
        for descendant_id in self.descendants(level_id):
            self._cache.discard(descendant_id)
            self._reset(self._levels[descendant_id], clear_selection=True)
        self._notify(level)

        if schedule and value is not None:
            for child_id in self._children[level_id]:
                self.schedule_load(child_id)

    def schedule_load(self, level_id: str) -> None:
        self.level(level_id)
        self._debouncer.schedule(level_id, lambda: self.load(level_id))

    def is_load_pending(self, level_id: str) -> bool:
        return self._debouncer.is_pending(level_id)

    async def load(self, level_id: str) -> None:
        """Load a level's options now if the loading policy allows it.

        A level loads only when it is not loaded, not already loading, and its
        parent (if any) has a selection. Anything else is a no-op.
        """
        level = self.level(level_id)
        parent = self.parent_of(level_id)
        if level.loaded or level.loading:
            return
        if parent is not None and not parent.selected_value:
            return

        parent_value = parent.selected_value if parent is not None else ROOT_PARENT
        cached = self._cache.get(level_id, parent_value)
        if cached is not None:
            level.options = cached
            level.loaded = True
            level.error = None
            self._notify(level)
            self._schedule_selected_children(level)
            return

        generation = self._generation[level_id]
        level.loading = True
        level.error = None
        self._notify(level)

        try:
            options = await self._lookups[level_id].fetch_options(parent_value)
        except ListCoreError as e:
            if self._generation[level_id] != generation:
                return
            failure = LookupLoadFailure(level_id, f"Failed to load {level_id} options: {e.message}")
            level.loading = False
            level.loaded = False
            level.options = []
            level.error = failure.message
            log_error(
                "filter_graph",
                failure,
                operation="lookup_load",
                context={"level": level_id, "parent_value": parent_value},
                level=logging.WARNING,
            )
            self._notify(level)
            return
        except Exception:
            if self._generation[level_id] == generation:
                level.loading = False
                self._notify(level)
            raise

        if self._generation[level_id] != generation:
            logger.debug(f"Discarding stale {level_id} options for parent {parent_value!r}")
            return

        level.loading = False
        level.options = list(options)
        level.loaded = True
        self._cache.put(level_id, parent_value, level.options)
        self._notify(level)
        self._schedule_selected_children(level)

    async def load_all(self) -> None:
        """Load every level whose parent is selected, top-down."""
        for level_id in list(self._levels):
            await self.load(level_id)

    async def reload(self, level_id: str) -> None:
        """Re-read a level, serving from cache when the parent is unchanged."""
        level = self.level(level_id)
        self._reset(level, clear_selection=False)
        await self.load(level_id)

    def invalidate(self, level_id: str) -> None:
        """Mark a level and its descendants stale and schedule a fresh fetch."""
        for stale_id in [level_id, *self.descendants(level_id)]:
            self._cache.discard(stale_id)
            self._reset(self._levels[stale_id], clear_selection=False)
        self.schedule_load(level_id)

    def clear(self) -> None:
        for level in self._levels.values():
            if level.parent_level_id is None:
                self.select_value(level.id, None)

    async def wait_idle(self) -> None:
        await self._debouncer.drain()

    def close(self) -> None:
        self._debouncer.cancel_all()

    def _schedule_selected_children(self, level: FilterLevel) -> None:
        if not level.selected_value:
            return
        for child_id in self._children[level.id]:
            if not self._levels[child_id].loaded:
                self.schedule_load(child_id)

    def _reset(self, level: FilterLevel, *, clear_selection: bool) -> None:
        self._generation[level.id] += 1
        self._debouncer.cancel(level.id)
        if clear_selection:
            level.selected_value = None
        level.options = []
        level.loaded = False
        level.loading = False
        level.error = None

    def _notify(self, level: FilterLevel) -> None:
        if self._on_change is not None:
            self._on_change(level)
