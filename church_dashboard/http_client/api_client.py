"""
This module provides the async JSON client used by list and lookup endpoints.
"""
from typing import Any, Dict, Optional

import httpx

from church_dashboard.core.logging import get_logger
from church_dashboard.core.settings import get_settings
from church_dashboard.services.errors import InvalidResponseShape, NetworkFailure
from church_dashboard.utils.error_logger import log_http_error

settings = get_settings()
logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
TENANT_HEADER = "x-tenant-id"


def _server_message(response: httpx.Response) -> Optional[str]:
    """Return the backend's `message` field from an error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None


class ApiClient:
    """
    Async HTTP client for the dashboard backend.
    It adds tenant and auth headers and converts transport and HTTP status
    failures into NetworkFailure.
    """
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        tenant_id: Optional[str] = None,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initializes the ApiClient.

        Args:
            base_url: Backend base URL. Falls back to settings.api_base_url.
            timeout: Default timeout for requests in seconds.
                     Falls back to settings.http_timeout_seconds or DEFAULT_TIMEOUT.
            headers: Extra default headers.
            tenant_id: Tenant sent as x-tenant-id. Falls back to settings.tenant_id.
            auth_token: Bearer token. Falls back to settings.auth_token.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.base_url = base_url or settings.api_base_url
        self.default_timeout = timeout or getattr(settings, "http_timeout_seconds", DEFAULT_TIMEOUT)

        base_headers = {"Accept": "application/json"}
        tenant = tenant_id or settings.tenant_id
        if tenant:
            base_headers[TENANT_HEADER] = tenant
        token = auth_token or settings.auth_token
        if token:
            base_headers["Authorization"] = f"Bearer {token}"
        if headers:
            base_headers.update(headers)
        self.default_headers = base_headers

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Initializes and returns the httpx.AsyncClient instance."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.default_headers,
                timeout=self.default_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        """
        Performs a GET request and decodes the JSON body.

        Args:
            url: Path relative to base_url, or an absolute URL.
            params: Query parameters, merged with any query already on `url`.

        Returns:
            The decoded JSON body.

        Raises:
            NetworkFailure: For transport errors and 4xx/5xx responses.
            InvalidResponseShape: If the body is not JSON.
        """
        client = self._get_client()
        logger.debug(f"GET {url} params={params}")
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            log_http_error(
                "api_client",
                url=url,
                response=e.response,
                error=e,
                operation="http_get",
                context={"status_code": status_code},
            )
            message = _server_message(e.response) or f"Request failed with status {status_code}"
            raise NetworkFailure(message, status_code=status_code, url=url) from e
        except httpx.RequestError as e:
            log_http_error("api_client", url=url, error=e, operation="http_get")
            raise NetworkFailure(f"Network error: {e}", url=url) from e

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseShape(f"Response from {url} is not valid JSON") from e

    async def aclose(self) -> None:
        """
        Closes the underlying httpx.AsyncClient.
        Should be called when the screen that owns the client goes away.
        """
        if self._client and not self._client.is_closed:
            logger.info("Closing ApiClient")
            await self._client.aclose()
            self._client = None
