"""List and lookup endpoint contracts plus their HTTP implementations."""

from __future__ import annotations

from typing import Any, Protocol

from pydantic import ValidationError

from church_dashboard.core.logging import get_logger
from church_dashboard.core.settings import get_settings
from church_dashboard.http_client.api_client import ApiClient
from church_dashboard.models.pagination import Option
from church_dashboard.services.errors import InvalidResponseShape, LookupLoadFailure

logger = get_logger(__name__)
settings = get_settings()

PARENT_PLACEHOLDER = "{parent_id}"
DEFAULT_PARENT_PARAM = "parentId"


class ListEndpoint(Protocol):
    """Paginated, searchable list of records."""

    name: str
    records_key: str

    async def fetch(self, token: str | None, params: dict[str, str]) -> Any:
        """Return the raw decoded response for one page."""
        ...


class LookupEndpoint(Protocol):
    """Options for one filter level, scoped to the parent level's selection."""

    name: str

    async def fetch_options(self, parent_id: str | None) -> list[Option]:
        ...


def is_url_token(token: str) -> bool:
    """Tokens that are paths or URLs are requested directly."""
    return token.startswith("/") or "://" in token


class HttpListEndpoint:
    """List endpoint served by `GET <path>?<criteria>&<cursor>`."""

    def __init__(
        self,
        client: ApiClient,
        path: str,
        *,
        name: str | None = None,
        records_key: str = "records",
        cursor_param: str | None = None,
    ) -> None:
        self.client = client
        self.path = path
        self.name = name or path.strip("/").replace("/", "_")
        self.records_key = records_key
        self.cursor_param = cursor_param or settings.cursor_param

    async def fetch(self, token: str | None, params: dict[str, str]) -> Any:
        query = dict(params)
        url = self.path
        if token is not None:
            if is_url_token(token):
                url = token
            else:
                query[self.cursor_param] = token
        return await self.client.get_json(url, params=query or None)


def _dig(payload: Any, dotted_key: str) -> Any:
    current = payload
    for part in dotted_key.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


class HttpLookupEndpoint:
    """Lookup endpoint, e.g. `/church/get-departments?branchId=<id>`.

    The parent id is either sent as `parent_param` or substituted into a
    `{parent_id}` placeholder in the path (`/church/a-department/{parent_id}`).
    """

    def __init__(
        self,
        client: ApiClient,
        path: str,
        *,
        name: str | None = None,
        options_key: str = "options",
        label_field: str = "name",
        parent_param: str | None = DEFAULT_PARENT_PARAM,
        parent_field: str | None = None,
    ) -> None:
        self.client = client
        self.path = path
        self.name = name or options_key
        self.options_key = options_key
        self.label_field = label_field
        self.parent_param = parent_param
        self.parent_field = parent_field

    async def fetch_options(self, parent_id: str | None) -> list[Option]:
        url = self.path
        params: dict[str, str] = {}
        if PARENT_PLACEHOLDER in url:
            if not parent_id:
                raise LookupLoadFailure(self.name, f"{self.name} lookup needs a parent id")
            url = url.replace(PARENT_PLACEHOLDER, parent_id)
        elif self.parent_param and parent_id:
            params[self.parent_param] = parent_id

        payload = await self.client.get_json(url, params=params or None)
        raw_options = _dig(payload, self.options_key)
        if raw_options is None:
            logger.info(f"{self.name} lookup returned no '{self.options_key}' key; treating as empty")
            return []
        if not isinstance(raw_options, list):
            raise InvalidResponseShape(f"{self.name} lookup: '{self.options_key}' is not a list")

        try:
            return [self._to_option(item, parent_id) for item in raw_options]
        except (ValidationError, TypeError, KeyError) as e:
            raise InvalidResponseShape(f"{self.name} lookup returned malformed options: {e}") from e

    def _to_option(self, item: Any, parent_id: str | None) -> Option:
        if not isinstance(item, dict):
            raise TypeError(f"option is {type(item).__name__}, expected object")
        item_parent = item.get(self.parent_field) if self.parent_field else None
        return Option(
            id=item["id"],
            label=item.get(self.label_field) or str(item["id"]),
            parent_id=item_parent if item_parent is not None else parent_id,
        )
