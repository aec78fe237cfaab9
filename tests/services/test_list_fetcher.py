"""Tests for page fetching, envelope normalization and shape validation."""

import pytest

from church_dashboard.models.criteria import SearchCriteria
from church_dashboard.services.errors import InvalidResponseShape
from church_dashboard.services.list_fetcher import (
    ListFetcher,
    build_query,
    normalize_payload,
    validate_page,
)
from tests.services._list_helpers import FakeListEndpoint, make_records, page_payload


def test_build_query_drops_empty_fields():
    criteria = SearchCriteria(
        {"search": "  ", "departmentId": "d1", "branchId": None, "isHeadQuarter": False}
    )

    assert build_query(criteria) == {"departmentId": "d1", "isHeadQuarter": "false"}
    assert build_query(None) == {}


def test_normalize_resource_keyed_response():
    payload = {
        "message": "Units fetched",
        "units": [{"id": "u1", "name": "Altos"}],
        "pagination": {"hasNextPage": True, "nextPage": "/church/all-units?cursor=abc"},
    }

    page = validate_page(payload, "units")

    assert page.records == [{"id": "u1", "name": "Altos"}]
    assert page.has_next_page is True
    assert page.next_token == "/church/all-units?cursor=abc"


def test_canonical_records_key_wins():
    normalized = normalize_payload(
        {"records": [], "units": [{"id": "1"}], "pagination": {}}, "units"
    )

    assert normalized["records"] == []


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"pagination": {"hasNextPage": False, "nextToken": None}},
        {"records": []},
        {"records": [{"id": "1"}], "pagination": {"hasNextPage": "yes", "nextToken": None}},
        {"records": [{"id": "1"}], "pagination": {"hasNextPage": False}},
        {"records": [{"id": "1"}], "pagination": {"hasNextPage": True, "nextToken": 42}},
        {"records": [{"id": "1"}], "pagination": {"hasNextPage": True, "nextToken": None}},
        {"records": [{"name": "no id"}], "pagination": {"hasNextPage": False, "nextToken": None}},
        {"records": "not a list", "pagination": {"hasNextPage": False, "nextToken": None}},
    ],
)
def test_invalid_shapes_raise(payload):
    with pytest.raises(InvalidResponseShape):
        validate_page(payload)


def test_validation_errors_are_attached():
    with pytest.raises(InvalidResponseShape) as exc_info:
        validate_page({"records": [], "pagination": {"hasNextPage": "maybe", "nextToken": None}})

    assert exc_info.value.errors
    assert exc_info.value.retryable is False


@pytest.mark.asyncio
async def test_fetch_sends_only_non_empty_params():
    endpoint = FakeListEndpoint(
        [page_payload(make_records(1, 2), has_next=False, next_token=None)]
    )

    page = await ListFetcher().fetch(
        endpoint, "tok", SearchCriteria({"search": "", "departmentId": "d1"})
    )

    assert endpoint.calls == [("tok", {"departmentId": "d1"})]
    assert len(page.records) == 2
    assert page.has_next_page is False


@pytest.mark.asyncio
async def test_fetch_propagates_shape_errors():
    endpoint = FakeListEndpoint([{"records": []}])

    with pytest.raises(InvalidResponseShape):
        await ListFetcher().fetch(endpoint, None)
