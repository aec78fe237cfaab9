"""Pydantic models for list pages and lookup options."""

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    field_validator,
    model_validator,
)

Record = dict[str, Any]


class RawPagination(BaseModel):
    """Pagination block as sent by the backend."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    has_next_page: StrictBool = Field(..., alias="hasNextPage")
    next_token: StrictStr | None = Field(
        ...,
        validation_alias=AliasChoices("nextToken", "nextPage", "next_token"),
        description="Opaque token for the next page (null if no more results)",
    )

    @model_validator(mode="after")
    def validate_next_token_present(self):
        if self.has_next_page and self.next_token is None:
            raise ValueError("hasNextPage is true but no next token was sent")
        return self


class RawListResponse(BaseModel):
    """Normalized `{records, pagination}` envelope used for validation."""

    model_config = ConfigDict(extra="ignore")

    records: list[dict[str, Any]]
    pagination: RawPagination

    @field_validator("records")
    @classmethod
    def validate_record_ids(cls, v):
        for index, record in enumerate(v):
            if record.get("id") is None:
                raise ValueError(f"record at index {index} has no id")
        return v


class ListPage(BaseModel):
    """A validated page of records."""

    model_config = ConfigDict(frozen=True)

    records: list[Record] = Field(default_factory=list)
    has_next_page: bool = False
    next_token: str | None = None

    @classmethod
    def empty(cls) -> "ListPage":
        return cls(records=[], has_next_page=False, next_token=None)


class Option(BaseModel):
    """One lookup entry (branch, department, unit)."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    parent_id: str | None = None

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v
