"""Fetch, normalize and validate one page from a list endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from church_dashboard.core.logging import get_logger
from church_dashboard.core.timing import timed
from church_dashboard.models.criteria import SearchCriteria
from church_dashboard.models.pagination import ListPage, RawListResponse
from church_dashboard.services.endpoints import ListEndpoint
from church_dashboard.services.errors import InvalidResponseShape

logger = get_logger(__name__)

CANONICAL_RECORDS_KEY = "records"


def build_query(criteria: SearchCriteria | None) -> dict[str, str]:
    """Query params for the non-empty criteria fields only."""
    if criteria is None:
        return {}
    return criteria.to_query_params()


def normalize_payload(payload: Any, records_key: str = CANONICAL_RECORDS_KEY) -> dict[str, Any]:
    """Map a resource-keyed response (`{"units": [...]}`) onto `{records, pagination}`.

    Only the envelope is renamed; field types are left for validation.
    """
    if not isinstance(payload, dict):
        raise InvalidResponseShape(
            f"Expected a JSON object, got {type(payload).__name__}"
        )
    if CANONICAL_RECORDS_KEY in payload:
        records = payload[CANONICAL_RECORDS_KEY]
    elif records_key in payload:
        records = payload[records_key]
    else:
        raise InvalidResponseShape(
            f"Response has neither '{CANONICAL_RECORDS_KEY}' nor '{records_key}'"
        )
    if "pagination" not in payload:
        raise InvalidResponseShape("Response has no 'pagination' block")
    return {"records": records, "pagination": payload["pagination"]}


def validate_page(payload: Any, records_key: str = CANONICAL_RECORDS_KEY) -> ListPage:
    """Validate a raw response into a ListPage.

    Raises:
        InvalidResponseShape: If any required field is missing or mistyped.
    """
    normalized = normalize_payload(payload, records_key)
    try:
        raw = RawListResponse.model_validate(normalized)
    except ValidationError as e:
        raise InvalidResponseShape(
            f"Invalid response structure: {e.error_count()} error(s)",
            errors=e.errors(include_url=False),
        ) from e
    return ListPage(
        records=raw.records,
        has_next_page=raw.pagination.has_next_page,
        next_token=raw.pagination.next_token,
    )


class ListFetcher:
    """Issues list requests; never touches cursor or filter state."""

    async def fetch(
        self,
        endpoint: ListEndpoint,
        token: str | None,
        criteria: SearchCriteria | None = None,
    ) -> ListPage:
        params = build_query(criteria)
        with timed(f"fetch {endpoint.name} (token={token!r}, params={sorted(params)})"):
            payload = await endpoint.fetch(token, params)
        page = validate_page(payload, endpoint.records_key)
        logger.debug(
            f"Fetched {len(page.records)} {endpoint.name} record(s); "
            f"has_next_page={page.has_next_page}"
        )
        return page
