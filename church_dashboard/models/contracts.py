"""Canonical enums shared by the list core and the UI layer."""

from __future__ import annotations

from enum import StrEnum


class ControllerPhase(StrEnum):
    """Lifecycle phases of a list controller."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    SEARCHING = "searching"
    PAGING_NEXT = "paging_next"
    PAGING_PREV = "paging_prev"
    ERRORED = "errored"


class MutationKind(StrEnum):
    """Record mutations the UI reports back after calling a mutation endpoint."""

    CREATE = "create"
    EDIT = "edit"
    STATUS_TOGGLE = "status_toggle"
    DELETE = "delete"


class ScopeLevel(StrEnum):
    """Hierarchy tier used both as a permission boundary and a filter."""

    CHURCH = "church"
    BRANCH = "branch"
    DEPARTMENT = "department"
    UNIT = "unit"


class DegradeReason(StrEnum):
    """Why a search fell back to local filtering."""

    NETWORK_FAILURE = "network_failure"
    INVALID_RESPONSE = "invalid_response"
    NO_BASELINE = "no_baseline"
