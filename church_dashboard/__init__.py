"""List core for the church-administration dashboard."""

from church_dashboard.models.contracts import ControllerPhase, MutationKind, ScopeLevel
from church_dashboard.models.criteria import ScopeContext, SearchCriteria
from church_dashboard.services.errors import (
    InvalidResponseShape,
    ListCoreError,
    LookupLoadFailure,
    NetworkFailure,
    NoNextPage,
    NoPreviousPage,
)
from church_dashboard.services.list_controller import ListController, ListView
from church_dashboard.services.resources import RESOURCES, build_list_controller

__all__ = [
    "ControllerPhase",
    "InvalidResponseShape",
    "ListController",
    "ListCoreError",
    "ListView",
    "LookupLoadFailure",
    "MutationKind",
    "NetworkFailure",
    "NoNextPage",
    "NoPreviousPage",
    "RESOURCES",
    "ScopeContext",
    "ScopeLevel",
    "SearchCriteria",
    "build_list_controller",
]
