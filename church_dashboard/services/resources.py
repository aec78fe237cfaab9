"""Catalogue of dashboard list screens and a factory wiring one controller per screen."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from church_dashboard.core.logging import get_logger
from church_dashboard.http_client.api_client import ApiClient
from church_dashboard.models.criteria import BRANCH_PARAM, DEPARTMENT_PARAM, ScopeContext
from church_dashboard.services.cursor_store import CursorStore
from church_dashboard.services.endpoints import HttpListEndpoint, HttpLookupEndpoint
from church_dashboard.services.filter_graph import FilterGraph, FilterLevelSpec
from church_dashboard.services.list_controller import ListController
from church_dashboard.services.lookup_cache import LookupCache
from church_dashboard.services.search_fallback import LocalFilter, SearchDegraded
from church_dashboard.utils.debounce import Scheduler

logger = get_logger(__name__)

UNIT_PARAM = "unitId"


@dataclass(frozen=True)
class LookupLevelDef:
    """HTTP lookup backing one filter level."""

    id: str
    param: str
    path: str
    options_key: str
    parent_level_id: str | None = None
    parent_param: str | None = None
    label_field: str = "name"


@dataclass(frozen=True)
class ListResource:
    """One list screen: where it reads from and what it can filter locally."""

    name: str
    path: str
    records_key: str
    local_filter: LocalFilter = field(default_factory=LocalFilter)
    levels: tuple[LookupLevelDef, ...] = ()


BRANCH_LEVEL = LookupLevelDef(
    id="branch",
    param=BRANCH_PARAM,
    path="/church/get-branches",
    options_key="branches",
)
DEPARTMENT_LEVEL = LookupLevelDef(
    id="department",
    param=DEPARTMENT_PARAM,
    path="/church/get-departments",
    options_key="departments",
    parent_level_id="branch",
    parent_param=BRANCH_PARAM,
)
UNIT_LEVEL = LookupLevelDef(
    id="unit",
    param=UNIT_PARAM,
    path="/church/a-department/{parent_id}",
    options_key="department.units",
    parent_level_id="department",
)

ADMINS = ListResource(
    name="admins",
    path="/church/view-admins",
    records_key="admins",
    local_filter=LocalFilter(
        text_fields=("name", "email"),
        match_fields={
            BRANCH_PARAM: "branchId",
            DEPARTMENT_PARAM: "departmentId",
            "isSuperAdmin": "isSuperAdmin",
        },
    ),
    levels=(BRANCH_LEVEL, DEPARTMENT_LEVEL),
)
BRANCHES = ListResource(
    name="branches",
    path="/church/get-branches",
    records_key="branches",
    local_filter=LocalFilter(
        text_fields=("name",),
        match_fields={"isHeadQuarter": "isHeadQuarter", "isActive": "isActive"},
    ),
)
DEPARTMENTS = ListResource(
    name="departments",
    path="/church/get-departments",
    records_key="departments",
    local_filter=LocalFilter(text_fields=("name",), match_fields={BRANCH_PARAM: "branchId"}),
    levels=(BRANCH_LEVEL,),
)
UNITS = ListResource(
    name="units",
    path="/church/all-units",
    records_key="units",
    local_filter=LocalFilter(
        text_fields=("name",),
        match_fields={BRANCH_PARAM: "branchId", DEPARTMENT_PARAM: "departmentId"},
    ),
    levels=(BRANCH_LEVEL, DEPARTMENT_LEVEL),
)
MEMBERS = ListResource(
    name="members",
    path="/member/all-members",
    records_key="members",
    local_filter=LocalFilter(
        text_fields=("name", "firstName", "lastName", "email", "phoneNo"),
        match_fields={
            BRANCH_PARAM: "branchId",
            DEPARTMENT_PARAM: "departmentId",
            UNIT_PARAM: "unitId",
        },
    ),
    levels=(BRANCH_LEVEL, DEPARTMENT_LEVEL, UNIT_LEVEL),
)

RESOURCES: dict[str, ListResource] = {
    resource.name: resource for resource in (ADMINS, BRANCHES, DEPARTMENTS, UNITS, MEMBERS)
}


def get_resource(name: str) -> ListResource:
    try:
        return RESOURCES[name]
    except KeyError:
        raise KeyError(f"Unknown list resource: {name}") from None


def build_filter_graph(
    resource: ListResource,
    client: ApiClient,
    *,
    scope: ScopeContext | None = None,
    scheduler: Scheduler | None = None,
    debounce_seconds: float | None = None,
) -> FilterGraph | None:
    """Build a fresh filter graph, pre-selecting levels from the scope context."""
    if not resource.levels:
        return None

    specs = [
        FilterLevelSpec(
            id=level.id,
            param=level.param,
            parent_level_id=level.parent_level_id,
            lookup=HttpLookupEndpoint(
                client,
                level.path,
                name=level.id,
                options_key=level.options_key,
                label_field=level.label_field,
                parent_param=level.parent_param,
                parent_field=level.parent_param,
            ),
        )
        for level in resource.levels
    ]
    graph = FilterGraph(
        specs,
        cache=LookupCache(),
        debounce_seconds=debounce_seconds,
        scheduler=scheduler,
    )

    if scope is not None:
        preset = {BRANCH_PARAM: scope.branch_id, DEPARTMENT_PARAM: scope.department_id}
        for level in graph.levels:
            value = preset.get(level.param)
            if value:
                graph.select_value(level.id, value, schedule=False)
    return graph


def build_list_controller(
    resource: ListResource | str,
    client: ApiClient,
    *,
    scope: ScopeContext | None = None,
    scheduler: Scheduler | None = None,
    debounce_seconds: float | None = None,
    on_degraded: Callable[[SearchDegraded], None] | None = None,
) -> ListController:
    """Wire a controller with its own cursor store, filter graph and lookup cache."""
    if isinstance(resource, str):
        resource = get_resource(resource)

    endpoint = HttpListEndpoint(
        client, resource.path, name=resource.name, records_key=resource.records_key
    )
    filters = build_filter_graph(
        resource,
        client,
        scope=scope,
        scheduler=scheduler,
        debounce_seconds=debounce_seconds,
    )
    logger.debug(f"Built list controller for {resource.name} ({len(resource.levels)} filter level(s))")
    return ListController(
        endpoint,
        local_filter=resource.local_filter,
        filters=filters,
        scope=scope,
        cursor=CursorStore(),
        on_degraded=on_degraded,
    )
