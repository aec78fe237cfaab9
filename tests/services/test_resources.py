"""Tests for the list resource catalogue and controller factory."""

import httpx
import pytest

from church_dashboard.http_client.api_client import ApiClient
from church_dashboard.models.criteria import ScopeContext
from church_dashboard.services.resources import (
    MEMBERS,
    RESOURCES,
    build_filter_graph,
    build_list_controller,
    get_resource,
)


@pytest.fixture
def api_client():
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/church/all-units":
            return httpx.Response(
                200,
                json={
                    "message": "ok",
                    "units": [{"id": "u1", "name": "Altos", "departmentId": "d1"}],
                    "pagination": {"hasNextPage": True, "nextPage": "/church/all-units?cursor=c2"},
                },
            )
        if path == "/church/get-branches":
            return httpx.Response(200, json={"branches": [{"id": "b1", "name": "HQ"}]})
        if path == "/church/get-departments":
            return httpx.Response(
                200,
                json={"departments": [{"id": "d1", "name": "Choir", "branchId": "b1"}]},
            )
        return httpx.Response(404, json={"message": "Not found"})

    return ApiClient(base_url="https://api.example.org", transport=httpx.MockTransport(handler))


def test_catalogue_lists_dashboard_screens():
    assert {"admins", "branches", "departments", "units", "members"} <= set(RESOURCES)
    assert [level.id for level in MEMBERS.levels] == ["branch", "department", "unit"]
    with pytest.raises(KeyError):
        get_resource("tithes")


def test_branches_screen_has_no_filter_graph(api_client):
    assert build_filter_graph(get_resource("branches"), api_client) is None


def test_scope_preselects_filter_levels(api_client, scheduler):
    graph = build_filter_graph(
        get_resource("units"),
        api_client,
        scope=ScopeContext(branch_id="b1", department_id="d1"),
        scheduler=scheduler,
        debounce_seconds=0.3,
    )

    assert graph.selections() == {"branchId": "b1", "departmentId": "d1"}
    assert scheduler.pending == 0


def test_each_controller_gets_its_own_state(api_client, scheduler):
    first = build_list_controller("units", api_client, scheduler=scheduler, debounce_seconds=0.3)
    second = build_list_controller("units", api_client, scheduler=scheduler, debounce_seconds=0.3)

    assert first.cursor is not second.cursor
    assert first.filters is not second.filters
    assert first.filters.cache is not second.filters.cache


@pytest.mark.asyncio
async def test_units_controller_end_to_end(api_client, scheduler):
    controller = build_list_controller(
        "units", api_client, scheduler=scheduler, debounce_seconds=0.3
    )
    try:
        view = await controller.initial_load()
        await controller.filters.load("branch")
        controller.filters.select_value("branch", "b1")
        scheduler.advance(0.3)
        await controller.filters.wait_idle()
    finally:
        controller.close()
        await api_client.aclose()

    assert [r["id"] for r in view.records] == ["u1"]
    assert controller.cursor.current().token == "/church/all-units?cursor=c2"
    assert [o.label for o in controller.filters.level("branch").options] == ["HQ"]
    assert [o.label for o in controller.filters.level("department").options] == ["Choir"]
