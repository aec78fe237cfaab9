"""Search criteria and scope context passed to list endpoints."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from church_dashboard.models.contracts import ScopeLevel

BRANCH_PARAM = "branchId"
DEPARTMENT_PARAM = "departmentId"
SCOPE_LEVEL_PARAM = "scopeLevel"


def _clean_value(key: str, value: Any) -> str | bool | int | float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, int | float):
        return value
    raise TypeError(f"Unsupported criteria value for {key!r}: {type(value).__name__}")


@dataclass(frozen=True)
class SearchCriteria:
    """Immutable set of named filters.

    Blank strings and None values are dropped on construction, so an empty
    field can never reach the outgoing query.
    """

    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        cleaned: dict[str, Any] = {}
        for key, value in self.values.items():
            value = _clean_value(key, value)
            if value is not None:
                cleaned[key] = value
        object.__setattr__(self, "values", MappingProxyType(cleaned))

    @classmethod
    def of(cls, **fields: Any) -> SearchCriteria:
        return cls(fields)

    @property
    def is_empty(self) -> bool:
        return not self.values

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def keys(self) -> Iterator[str]:
        return iter(self.values.keys())

    def merged(self, other: SearchCriteria | Mapping[str, Any] | None) -> SearchCriteria:
        """Return new criteria where `other` overrides this set."""
        if other is None:
            return self
        overrides = other.values if isinstance(other, SearchCriteria) else other
        combined = dict(self.values)
        combined.update(overrides)
        return SearchCriteria(combined)

    def to_query_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        for key, value in self.values.items():
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
            else:
                params[key] = str(value)
        return params


@dataclass(frozen=True)
class ScopeContext:
    """Tenant scope a list screen is opened with (from the signed-in admin)."""

    branch_id: str | None = None
    department_id: str | None = None
    scope_level: ScopeLevel | None = None

    def as_criteria(self) -> SearchCriteria:
        return SearchCriteria(
            {
                BRANCH_PARAM: self.branch_id,
                DEPARTMENT_PARAM: self.department_id,
                SCOPE_LEVEL_PARAM: self.scope_level.value if self.scope_level else None,
            }
        )
