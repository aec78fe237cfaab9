"""Server-side search with a local-filter fallback over the last good records."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from church_dashboard.core.logging import get_logger
from church_dashboard.models.contracts import DegradeReason
from church_dashboard.models.criteria import SearchCriteria
from church_dashboard.models.pagination import ListPage, Record
from church_dashboard.services.endpoints import ListEndpoint
from church_dashboard.services.errors import InvalidResponseShape, ListCoreError, NetworkFailure
from church_dashboard.services.list_fetcher import ListFetcher

logger = get_logger(__name__)

SEARCH_PARAM = "search"
SEARCH_FIELD_PARAM = "searchField"


@dataclass(frozen=True)
class LocalFilter:
    """Which criteria can be evaluated client-side, and against which record keys.

    Attributes:
        text_fields: Record keys searched by substring for the `search` term.
        match_fields: Criteria key -> record key compared for equality
            (scoped ids such as departmentId, or boolean flags).
    """

    text_fields: tuple[str, ...] = ("name",)
    match_fields: Mapping[str, str] = field(default_factory=dict)

    def evaluable(self) -> frozenset[str]:
        return frozenset({SEARCH_PARAM, SEARCH_FIELD_PARAM, *self.match_fields})

    def record_fields_for(self, criteria: SearchCriteria) -> frozenset[str]:
        """Record keys whose edits can change membership under `criteria`."""
        fields: set[str] = set()
        if criteria.get(SEARCH_PARAM) is not None:
            fields.update(self.text_fields_for(criteria))
        for criteria_key, record_key in self.match_fields.items():
            if criteria.get(criteria_key) is not None:
                fields.add(record_key)
        return frozenset(fields)

    def text_fields_for(self, criteria: SearchCriteria) -> tuple[str, ...]:
        search_field = criteria.get(SEARCH_FIELD_PARAM)
        if isinstance(search_field, str) and search_field in self.text_fields:
            return (search_field,)
        return self.text_fields


@dataclass(frozen=True)
class SearchDegraded:
    """Warning signal: results came from local filtering, pagination is off."""

    reason: DegradeReason
    message: str
    ignored_fields: tuple[str, ...] = ()
    error: ListCoreError | None = None


@dataclass(frozen=True)
class SearchOutcome:
    page: ListPage
    degraded: SearchDegraded | None = None

    @property
    def from_server(self) -> bool:
        return self.degraded is None


def _matches_value(record_value: Any, wanted: Any) -> bool:
    if isinstance(wanted, bool):
        return isinstance(record_value, bool) and record_value is wanted
    if record_value is None:
        return False
    return str(record_value) == str(wanted)


def record_matches(record: Record, criteria: SearchCriteria, local_filter: LocalFilter) -> bool:
    term = criteria.get(SEARCH_PARAM)
    if term is not None:
        needle = str(term).lower()
        haystacks = (record.get(name) for name in local_filter.text_fields_for(criteria))
        if not any(isinstance(h, str) and needle in h.lower() for h in haystacks):
            return False
    for criteria_key, record_key in local_filter.match_fields.items():
        wanted = criteria.get(criteria_key)
        if wanted is not None and not _matches_value(record.get(record_key), wanted):
            return False
    return True


def filter_locally(
    records: Sequence[Record], criteria: SearchCriteria, local_filter: LocalFilter
) -> list[Record]:
    return [record for record in records if record_matches(record, criteria, local_filter)]


def decide_degradation(
    error: ListCoreError,
    criteria: SearchCriteria,
    local_filter: LocalFilter,
    *,
    has_baseline: bool,
) -> SearchDegraded:
    """Describe how a failed server search degrades. Pure; no notification."""
    ignored = tuple(sorted(set(criteria.keys()) - local_filter.evaluable()))
    if not has_baseline:
        return SearchDegraded(
            reason=DegradeReason.NO_BASELINE,
            message="Server search failed and no records are loaded to filter locally",
            ignored_fields=ignored,
            error=error,
        )
    if isinstance(error, InvalidResponseShape):
        reason = DegradeReason.INVALID_RESPONSE
    else:
        reason = DegradeReason.NETWORK_FAILURE
    return SearchDegraded(
        reason=reason,
        message="Server search failed, applying local filter",
        ignored_fields=ignored,
        error=error,
    )


class SearchFallbackEngine:
    """Searches through the list fetcher, degrading to local filtering."""

    def __init__(
        self,
        fetcher: ListFetcher,
        endpoint: ListEndpoint,
        local_filter: LocalFilter | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.endpoint = endpoint
        self.local_filter = local_filter or LocalFilter()

    async def search(
        self,
        criteria: SearchCriteria,
        baseline: Sequence[Record] | None,
        *,
        local_criteria: SearchCriteria | None = None,
    ) -> SearchOutcome:
        """Run a first-page search.

        Args:
            criteria: Full criteria sent to the server.
            baseline: Last successfully loaded records (not re-fetched).
            local_criteria: Criteria used for local filtering; defaults to `criteria`.

        Returns:
            SearchOutcome; `degraded` is set when local filtering was used.
        """
        try:
            page = await self.fetcher.fetch(self.endpoint, None, criteria)
            return SearchOutcome(page=page)
        except (NetworkFailure, InvalidResponseShape) as e:
            local = local_criteria if local_criteria is not None else criteria
            degraded = decide_degradation(
                e, local, self.local_filter, has_baseline=baseline is not None
            )
            if baseline is None:
                logger.warning(f"{self.endpoint.name} search failed with no baseline: {e}")
                return SearchOutcome(page=ListPage.empty(), degraded=degraded)

            records = filter_locally(baseline, local, self.local_filter)
            logger.warning(
                f"{self.endpoint.name} search failed ({e}); local filter kept "
                f"{len(records)} of {len(baseline)} record(s)"
            )
            return SearchOutcome(
                page=ListPage(records=records, has_next_page=False, next_token=None),
                degraded=degraded,
            )
