"""Tests for cascading filter levels and debounced lookups."""

import asyncio

import pytest

from church_dashboard.services.errors import NetworkFailure
from church_dashboard.services.filter_graph import FilterGraph, FilterLevelSpec
from church_dashboard.services.lookup_cache import LookupCache
from tests.services._list_helpers import FakeLookupEndpoint

DEBOUNCE = 0.3


@pytest.fixture
def lookups():
    return {
        "branch": FakeLookupEndpoint({None: ["HQ", "North"]}, name="branch"),
        "department": FakeLookupEndpoint(
            {"b1": ["Choir", "Ushers"], "b2": ["Media"]}, name="department"
        ),
        "unit": FakeLookupEndpoint({"d1": ["Altos"], "d2": ["Cameras"]}, name="unit"),
    }


@pytest.fixture
def graph(lookups, scheduler):
    specs = [
        FilterLevelSpec(id="branch", param="branchId", lookup=lookups["branch"]),
        FilterLevelSpec(
            id="department",
            param="departmentId",
            lookup=lookups["department"],
            parent_level_id="branch",
        ),
        FilterLevelSpec(
            id="unit", param="unitId", lookup=lookups["unit"], parent_level_id="department"
        ),
    ]
    return FilterGraph(specs, debounce_seconds=DEBOUNCE, scheduler=scheduler)


async def _settle(graph, scheduler):
    scheduler.advance(DEBOUNCE)
    await graph.wait_idle()


def test_rejects_duplicate_and_undeclared_parent(lookups):
    with pytest.raises(ValueError):
        FilterGraph(
            [
                FilterLevelSpec(id="branch", param="branchId", lookup=lookups["branch"]),
                FilterLevelSpec(id="branch", param="branchId", lookup=lookups["branch"]),
            ],
            debounce_seconds=0,
        )
    with pytest.raises(ValueError):
        FilterGraph(
            [
                FilterLevelSpec(
                    id="department",
                    param="departmentId",
                    lookup=lookups["department"],
                    parent_level_id="branch",
                )
            ],
            debounce_seconds=0,
        )


def test_descendants_are_nearest_first(graph):
    assert graph.children("branch") == ["department"]
    assert graph.descendants("branch") == ["department", "unit"]
    assert graph.descendants("unit") == []
    with pytest.raises(KeyError):
        graph.level("ministry")


@pytest.mark.asyncio
async def test_root_level_loads_without_parent(graph, lookups):
    await graph.load("branch")

    branch = graph.level("branch")
    assert branch.loaded is True
    assert [o.label for o in branch.options] == ["HQ", "North"]
    assert lookups["branch"].calls == [None]


@pytest.mark.asyncio
async def test_child_does_not_load_without_parent_selection(graph, lookups):
    await graph.load("department")

    assert lookups["department"].calls == []
    assert graph.level("department").loaded is False


@pytest.mark.asyncio
async def test_selecting_parent_schedules_debounced_child_load(graph, lookups, scheduler):
    graph.select_value("branch", "b1")

    assert graph.is_load_pending("department")
    assert lookups["department"].calls == []

    await _settle(graph, scheduler)

    department = graph.level("department")
    assert lookups["department"].calls == ["b1"]
    assert [o.label for o in department.options] == ["Choir", "Ushers"]
    assert all(o.parent_id == "b1" for o in department.options)


@pytest.mark.asyncio
async def test_rapid_changes_coalesce_into_one_lookup(graph, lookups, scheduler):
    graph.select_value("branch", "b1")
    scheduler.advance(DEBOUNCE / 2)
    graph.select_value("branch", "b2")
    await _settle(graph, scheduler)

    assert lookups["department"].calls == ["b2"]
    assert [o.label for o in graph.level("department").options] == ["Media"]


@pytest.mark.asyncio
async def test_parent_change_clears_all_descendants_synchronously(graph, lookups, scheduler):
    graph.select_value("branch", "b1")
    await _settle(graph, scheduler)
    graph.select_value("department", "d1")
    await _settle(graph, scheduler)
    graph.select_value("unit", "b1-unit")
    assert graph.level("unit").loaded is True

    graph.select_value("branch", "b2")

    for level_id in ("department", "unit"):
        level = graph.level(level_id)
        assert level.selected_value is None
        assert level.options == []
        assert level.loaded is False
    assert not graph.is_load_pending("unit")
    assert graph.is_load_pending("department")


@pytest.mark.asyncio
async def test_selecting_same_value_is_a_no_op(graph, lookups, scheduler):
    graph.select_value("branch", "b1")
    await _settle(graph, scheduler)

    graph.select_value("branch", "b1")

    assert not graph.is_load_pending("department")
    assert graph.level("department").loaded is True


@pytest.mark.asyncio
async def test_clearing_selection_does_not_schedule_children(graph, scheduler):
    graph.select_value("branch", "b1")
    graph.select_value("branch", "  ")

    assert graph.level("branch").selected_value is None
    assert not graph.is_load_pending("department")
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_stale_lookup_result_is_discarded(lookups, scheduler):
    gate = asyncio.Event()

    class SlowLookup:
        name = "department"

        def __init__(self):
            self.calls = []

        async def fetch_options(self, parent_id):
            self.calls.append(parent_id)
            await gate.wait()
            return await lookups["department"].fetch_options(parent_id)

    slow = SlowLookup()
    graph = FilterGraph(
        [
            FilterLevelSpec(id="branch", param="branchId", lookup=lookups["branch"]),
            FilterLevelSpec(
                id="department", param="departmentId", lookup=slow, parent_level_id="branch"
            ),
        ],
        debounce_seconds=DEBOUNCE,
        scheduler=scheduler,
    )
    graph.select_value("branch", "b1", schedule=False)

    task = asyncio.create_task(graph.load("department"))
    await asyncio.sleep(0)
    assert graph.level("department").loading is True

    graph.select_value("branch", "b2", schedule=False)
    gate.set()
    await task

    department = graph.level("department")
    assert department.options == []
    assert department.loaded is False
    assert ("department", "b1") not in graph.cache


@pytest.mark.asyncio
async def test_lookup_failure_is_isolated_to_its_level(graph, lookups, scheduler):
    await graph.load("branch")
    lookups["department"].failures.append(NetworkFailure("boom", status_code=500))

    graph.select_value("branch", "b1")
    await _settle(graph, scheduler)

    department = graph.level("department")
    assert department.loaded is False
    assert department.options == []
    assert "boom" in department.error
    assert graph.level("branch").loaded is True
    assert graph.level("branch").error is None

    await graph.load("department")
    assert department.loaded is True
    assert department.error is None


@pytest.mark.asyncio
async def test_reload_with_unchanged_parent_is_served_from_cache(graph, lookups, scheduler):
    graph.select_value("branch", "b1")
    await _settle(graph, scheduler)

    await graph.reload("department")

    assert lookups["department"].calls == ["b1"]
    assert graph.level("department").loaded is True


@pytest.mark.asyncio
async def test_parent_change_discards_descendant_cache(graph, lookups, scheduler):
    graph.select_value("branch", "b1")
    await _settle(graph, scheduler)
    graph.select_value("branch", "b2")
    await _settle(graph, scheduler)
    graph.select_value("branch", "b1")
    await _settle(graph, scheduler)

    assert lookups["department"].calls == ["b1", "b2", "b1"]


@pytest.mark.asyncio
async def test_invalidate_forces_refetch(graph, lookups, scheduler):
    graph.select_value("branch", "b1")
    await _settle(graph, scheduler)

    graph.invalidate("department")
    assert graph.level("department").loaded is False
    await _settle(graph, scheduler)

    assert lookups["department"].calls == ["b1", "b1"]


@pytest.mark.asyncio
async def test_load_all_follows_preselected_parents(graph, lookups):
    graph.select_value("branch", "b2", schedule=False)

    await graph.load_all()

    assert lookups["branch"].calls == [None]
    assert lookups["department"].calls == ["b2"]
    assert lookups["unit"].calls == []


def test_selections_and_clear(graph):
    graph.select_value("branch", "b1", schedule=False)
    graph.select_value("department", "d1", schedule=False)

    assert graph.selections() == {"branchId": "b1", "departmentId": "d1"}

    graph.clear()
    assert graph.selections() == {}


def test_on_change_receives_updated_level(lookups, scheduler):
    seen = []
    graph = FilterGraph(
        [FilterLevelSpec(id="branch", param="branchId", lookup=lookups["branch"])],
        debounce_seconds=DEBOUNCE,
        scheduler=scheduler,
        on_change=seen.append,
    )

    graph.select_value("branch", "b1")

    assert [level.id for level in seen] == ["branch"]


def test_close_cancels_pending_loads(graph, scheduler):
    graph.select_value("branch", "b1")
    graph.close()

    assert not graph.is_load_pending("department")
    assert scheduler.advance(DEBOUNCE) == 0


@pytest.mark.asyncio
async def test_unexpected_lookup_error_does_not_leave_level_loading(lookups, scheduler):
    class BrokenLookup:
        name = "branch"

        def __init__(self):
            self.calls = 0

        async def fetch_options(self, parent_id):
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("decoder crashed")
            return await lookups["branch"].fetch_options(parent_id)

    graph = FilterGraph(
        [FilterLevelSpec(id="branch", param="branchId", lookup=BrokenLookup())],
        debounce_seconds=DEBOUNCE,
        scheduler=scheduler,
    )

    with pytest.raises(RuntimeError):
        await graph.load("branch")
    assert graph.level("branch").loading is False

    await graph.load("branch")
    assert graph.level("branch").loaded is True
