"""List controller: cursor pagination, search with fallback, post-mutation reconciliation.

One controller backs one list screen. It owns its cursor store and filter
graph; nothing is shared between controllers.

Every operation takes a new request sequence number. A response (or failure)
that arrives after a newer operation has started is ignored without touching
state, so a slow page-1 response can never overwrite a newer page-2.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from church_dashboard.core.logging import get_logger
from church_dashboard.models.contracts import ControllerPhase, MutationKind
from church_dashboard.models.criteria import ScopeContext, SearchCriteria
from church_dashboard.models.pagination import ListPage, Record
from church_dashboard.services.cursor_store import CursorStore
from church_dashboard.services.endpoints import ListEndpoint
from church_dashboard.services.errors import (
    IllegalTransition,
    ListCoreError,
    NoNextPage,
    NoPreviousPage,
)
from church_dashboard.services.filter_graph import FilterGraph
from church_dashboard.services.list_fetcher import ListFetcher
from church_dashboard.services.search_fallback import (
    SEARCH_PARAM,
    LocalFilter,
    SearchDegraded,
    SearchFallbackEngine,
)
from church_dashboard.utils.error_logger import log_error, log_list_event

logger = get_logger(__name__)

_BUSY = frozenset(
    {
        ControllerPhase.LOADING,
        ControllerPhase.SEARCHING,
        ControllerPhase.PAGING_NEXT,
        ControllerPhase.PAGING_PREV,
    }
)

_TRANSITIONS: dict[ControllerPhase, frozenset[ControllerPhase]] = {
    ControllerPhase.IDLE: _BUSY,
    ControllerPhase.LOADED: _BUSY,
    ControllerPhase.ERRORED: frozenset({ControllerPhase.IDLE}),
    **{
        phase: _BUSY | {ControllerPhase.LOADED, ControllerPhase.ERRORED}
        for phase in _BUSY
    },
}

STATUS_FIELD = "isActive"


@dataclass(frozen=True)
class ListView:
    """Immutable snapshot of a list screen for rendering."""

    phase: ControllerPhase
    records: tuple[Record, ...]
    page: int
    has_next_page: bool
    has_previous_page: bool
    criteria: SearchCriteria
    degraded: SearchDegraded | None = None
    error: ListCoreError | None = None

    @property
    def is_busy(self) -> bool:
        return self.phase in _BUSY


class ListController:
    """Orchestrates cursor store, fetcher, search fallback and filter graph."""

    def __init__(
        self,
        endpoint: ListEndpoint,
        *,
        fetcher: ListFetcher | None = None,
        local_filter: LocalFilter | None = None,
        filters: FilterGraph | None = None,
        scope: ScopeContext | None = None,
        cursor: CursorStore | None = None,
        on_degraded: Callable[[SearchDegraded], None] | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.fetcher = fetcher or ListFetcher()
        self.local_filter = local_filter or LocalFilter()
        self.engine = SearchFallbackEngine(self.fetcher, endpoint, self.local_filter)
        self.filters = filters
        self.scope = scope or ScopeContext()
        self.cursor = cursor or CursorStore()
        self.on_degraded = on_degraded

        self._phase = ControllerPhase.IDLE
        self._records: list[Record] = []
        self._has_next_page = False
        self._criteria = SearchCriteria()
        self._baseline: list[Record] | None = None
        self._degraded: SearchDegraded | None = None
        self._error: ListCoreError | None = None
        self._failed_operation: Callable[[], Awaitable[ListView]] | None = None
        self._seq = 0

    # ------------------------------------------------------------------
    # Read side

    @property
    def phase(self) -> ControllerPhase:
        return self._phase

    @property
    def records(self) -> list[Record]:
        return list(self._records)

    @property
    def criteria(self) -> SearchCriteria:
        return self._criteria

    @property
    def baseline(self) -> list[Record] | None:
        return list(self._baseline) if self._baseline is not None else None

    @property
    def has_next_page(self) -> bool:
        return self._has_next_page

    @property
    def degraded(self) -> SearchDegraded | None:
        return self._degraded

    @property
    def error(self) -> ListCoreError | None:
        return self._error

    def snapshot(self) -> ListView:
        return ListView(
            phase=self._phase,
            records=tuple(self._records),
            page=self.cursor.page,
            has_next_page=self._has_next_page,
            has_previous_page=self.cursor.has_previous,
            criteria=self._criteria,
            degraded=self._degraded,
            error=self._error,
        )

    # ------------------------------------------------------------------
    # Operations

    async def initial_load(self) -> ListView:
        """Fetch page 1 with no search criteria and rebuild the baseline."""
        snapshot = self.cursor.snapshot()
        criteria_before = self._criteria
        seq = self._begin(ControllerPhase.LOADING)
        self.cursor.reset()
        self._criteria = SearchCriteria()

        try:
            page = await self.fetcher.fetch(self.endpoint, None, self._outgoing(self._criteria))
        except ListCoreError as e:
            if self._is_current(seq):
                self.cursor.restore(snapshot)
                self._criteria = criteria_before
                self._fail(e, "initial_load", self.initial_load)
            return self.snapshot()

        if self._is_current(seq):
            self.cursor.remember_next(page.next_token)
            self._apply(page, from_server=True)
            log_list_event(resource=self.endpoint.name, event="initial_load", count=len(page.records))
        return self.snapshot()

    async def run_search(self, criteria: SearchCriteria | Mapping[str, Any] | None) -> ListView:
        """Search from page 1, falling back to local filtering on failure."""
        if not isinstance(criteria, SearchCriteria):
            criteria = SearchCriteria(criteria or {})

        seq = self._begin(ControllerPhase.SEARCHING)
        self.cursor.reset()
        self._criteria = criteria

        outcome = await self.engine.search(
            self._outgoing(criteria), self._baseline, local_criteria=criteria
        )
        if not self._is_current(seq):
            logger.debug(f"Ignoring stale {self.endpoint.name} search result (seq={seq})")
            return self.snapshot()

        self.cursor.remember_next(outcome.page.next_token)
        self._apply(outcome.page, from_server=outcome.from_server)
        if outcome.degraded is not None:
            self._degraded = outcome.degraded
            log_list_event(
                resource=self.endpoint.name,
                event="search_degraded",
                level=logging.WARNING,
                reason=outcome.degraded.reason.value,
                ignored_fields=list(outcome.degraded.ignored_fields) or None,
                count=len(outcome.page.records),
            )
            if self.on_degraded is not None:
                self.on_degraded(outcome.degraded)
        return self.snapshot()

    async def search_with_filters(self, search: str | None = None, **extra: Any) -> ListView:
        """Search using the current filter selections plus a free-text term."""
        fields: dict[str, Any] = {}
        if self.filters is not None:
            fields.update(self.filters.selections())
        fields[SEARCH_PARAM] = search
        fields.update(extra)
        return await self.run_search(SearchCriteria(fields))

    async def clear_search(self) -> ListView:
        if self.filters is not None:
            self.filters.clear()
        return await self.initial_load()

    async def page_forward(self) -> ListView:
        """Fetch the next page with the active criteria.

        Raises:
            NoNextPage: If the current page is the last one.
        """
        token = self.cursor.current().token
        if not self._has_next_page or token is None:
            raise NoNextPage()

        seq = self._begin(ControllerPhase.PAGING_NEXT)
        try:
            page = await self.fetcher.fetch(self.endpoint, token, self._outgoing(self._criteria))
        except ListCoreError as e:
            if self._is_current(seq):
                self._fail(e, "page_forward", self.page_forward)
            return self.snapshot()

        if self._is_current(seq):
            self.cursor.advance(page.next_token)
            self._apply(page, from_server=True)
            log_list_event(resource=self.endpoint.name, event="page_forward", page=self.cursor.page)
        return self.snapshot()

    async def page_back(self) -> ListView:
        """Refetch the previous page with the active criteria.

        Raises:
            NoPreviousPage: If already on the first page.
        """
        if not self.cursor.has_previous:
            raise NoPreviousPage()

        snapshot = self.cursor.snapshot()
        criteria_before = self._criteria
        seq = self._begin(ControllerPhase.PAGING_PREV)
        token = self.cursor.retreat()

        try:
            page = await self.fetcher.fetch(self.endpoint, token, self._outgoing(self._criteria))
        except ListCoreError as e:
            if self._is_current(seq):
                self.cursor.restore(snapshot)
                self._criteria = criteria_before
                self._fail(e, "page_back", self.page_back)
            return self.snapshot()

        if self._is_current(seq):
            self.cursor.remember_next(page.next_token)
            self._apply(page, from_server=True)
            log_list_event(resource=self.endpoint.name, event="page_back", page=self.cursor.page)
        return self.snapshot()

    async def refresh_current_page(self) -> ListView:
        """Refetch the page on screen with the active criteria."""
        token = self.cursor.current_page_token()
        seq = self._begin(ControllerPhase.LOADING)
        try:
            page = await self.fetcher.fetch(self.endpoint, token, self._outgoing(self._criteria))
        except ListCoreError as e:
            if self._is_current(seq):
                self._fail(e, "refresh_current_page", self.refresh_current_page)
            return self.snapshot()

        if self._is_current(seq):
            self.cursor.remember_next(page.next_token)
            self._apply(page, from_server=True)
        return self.snapshot()

    async def after_mutation(
        self,
        record_id: str | int,
        kind: MutationKind,
        changes: Mapping[str, Any] | None = None,
    ) -> ListView:
        """Reconcile local state after the UI called a mutation endpoint.

        Args:
            record_id: Id of the mutated record.
            kind: What happened to it.
            changes: Fields the edit or status toggle changed.
        """
        kind = MutationKind(kind)
        if kind is MutationKind.DELETE:
            self._records = [r for r in self._records if not _same_id(r, record_id)]
            if self._baseline is not None:
                self._baseline = [r for r in self._baseline if not _same_id(r, record_id)]
            if not self._records and self.cursor.page > 1:
                logger.info(f"{self.endpoint.name} page {self.cursor.page} emptied by delete; stepping back")
                return await self.page_back()
            return self.snapshot()

        if kind is MutationKind.CREATE:
            return await self.refresh_current_page()

        changes = dict(changes or {})
        if kind is MutationKind.STATUS_TOGGLE and STATUS_FIELD not in changes:
            current = next((r for r in self._records if _same_id(r, record_id)), None)
            if current is not None and isinstance(current.get(STATUS_FIELD), bool):
                changes[STATUS_FIELD] = not current[STATUS_FIELD]

        filtered_fields = self.local_filter.record_fields_for(self._criteria) | set(self._criteria.keys())
        affected = set(changes) & filtered_fields
        if affected:
            logger.info(
                f"{self.endpoint.name} {kind.value} of {record_id} touched filtered "
                f"field(s) {sorted(affected)}; refetching current page"
            )
            return await self.refresh_current_page()

        self._records = [_patched(r, record_id, changes) for r in self._records]
        if self._baseline is not None:
            self._baseline = [_patched(r, record_id, changes) for r in self._baseline]
        return self.snapshot()

    async def retry(self) -> ListView:
        """Re-run the operation that last failed (user initiated)."""
        operation = self._failed_operation
        if operation is None:
            return self.snapshot()
        return await operation()

    def acknowledge_error(self) -> None:
        """Move an errored controller back to idle."""
        if self._phase is ControllerPhase.ERRORED:
            self._transition(ControllerPhase.IDLE)

    def close(self) -> None:
        self._seq += 1
        if self.filters is not None:
            self.filters.close()

    # ------------------------------------------------------------------
    # Internals

    def _outgoing(self, criteria: SearchCriteria) -> SearchCriteria:
        return self.scope.as_criteria().merged(criteria)

    def _transition(self, phase: ControllerPhase) -> None:
        if phase not in _TRANSITIONS[self._phase]:
            raise IllegalTransition(f"Cannot move from {self._phase} to {phase}")
        self._phase = phase

    def _begin(self, phase: ControllerPhase) -> int:
        if self._phase is ControllerPhase.ERRORED:
            self._transition(ControllerPhase.IDLE)
        self._transition(phase)
        self._error = None
        self._seq += 1
        return self._seq

    def _is_current(self, seq: int) -> bool:
        return seq == self._seq

    def _apply(self, page: ListPage, *, from_server: bool) -> None:
        self._records = [dict(r) for r in page.records]
        self._has_next_page = page.has_next_page
        if from_server:
            self._baseline = [dict(r) for r in page.records]
            self._degraded = None
        self._failed_operation = None
        self._transition(ControllerPhase.LOADED)

    def _fail(
        self,
        error: ListCoreError,
        operation: str,
        retry_operation: Callable[[], Awaitable[ListView]],
    ) -> None:
        self._error = error
        self._failed_operation = retry_operation
        self._transition(ControllerPhase.ERRORED)
        log_error(
            "list_controller",
            error,
            operation=operation,
            context={"resource": self.endpoint.name, "page": self.cursor.page},
            level=logging.WARNING if error.retryable else logging.ERROR,
        )


def _same_id(record: Record, record_id: str | int) -> bool:
    return str(record.get("id")) == str(record_id)


def _patched(record: Record, record_id: str | int, changes: Mapping[str, Any]) -> Record:
    if not _same_id(record, record_id):
        return record
    return {**record, **changes}
