"""
Structured error logging for the list core.

Errors logged here carry component/operation/context fields, which the JSONL
handlers in church_dashboard/core/logging.py write to logs/errors/ and
logs/structured/.

Usage:
    from church_dashboard.utils.error_logger import log_error, log_http_error

    log_error("list_controller", error, operation="page_forward", context={"page": 2})
    log_http_error("api_client", url="/church/all-units", error=e, response=resp)
    log_list_event(resource="units", event="search_degraded", reason="network_failure")
"""

import logging
from typing import Any

from church_dashboard.core.logging import get_logger


def _extract_http_details(response: Any) -> dict[str, Any]:
    """Extract useful details from an HTTP response object.

    Args:
        response: HTTP response object.

    Returns:
        Dictionary with extracted HTTP details.
    """
    details: dict[str, Any] = {}

    try:
        if hasattr(response, "status_code"):
            details["status_code"] = response.status_code
        if hasattr(response, "request"):
            details["method"] = response.request.method
            details["request_url"] = str(response.request.url)
        if hasattr(response, "text"):
            details["response_body"] = response.text[:1000]
    except Exception as e:
        details["extraction_error"] = f"Failed to extract HTTP details: {e}"

    return details


def log_error(
    component: str,
    error: Exception,
    *,
    operation: str | None = None,
    context: dict[str, Any] | None = None,
    http_response: Any | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log an error with full context to both console and JSONL.

    Args:
        component: Component name for identifying the source of errors.
        error: The exception that occurred.
        operation: Name of the operation that failed.
        context: Additional context data.
        http_response: HTTP response object (if applicable).
        level: Log level; contained failures may log at WARNING.
    """
    logger = get_logger(f"error.{component}")

    http_details = None
    if http_response is not None:
        http_details = _extract_http_details(http_response)

    operation_str = f" during {operation}" if operation else ""
    message = f"{component} error{operation_str}: {error}"

    logger.log(
        level,
        message,
        exc_info=error,
        extra={
            "component": component,
            "operation": operation,
            "context_data": context,
            "http_details": http_details,
            "error_type": type(error).__name__,
            "error_message": str(error),
        },
    )


def log_http_error(
    component: str,
    url: str,
    *,
    response: Any | None = None,
    error: Exception | None = None,
    operation: str | None = None,
    context: dict[str, Any] | None = None,
) -> None:
    """Log HTTP-specific errors with response details.

    Args:
        component: Component name for identifying the source of errors.
        url: The URL that was requested.
        response: HTTP response object (if available).
        error: The exception that occurred (if any).
        operation: Name of the operation that failed.
        context: Additional context data.
    """
    full_context = {"url": url}
    if context:
        full_context.update(context)

    if not error:
        status_code = getattr(response, "status_code", "unknown")
        error = Exception(f"HTTP error for {url} (status: {status_code})")

    log_error(
        component,
        error,
        operation=operation or "http_request",
        context=full_context,
        http_response=response,
    )


def log_list_event(
    *,
    resource: str,
    event: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Emit a structured list-screen event (search degraded, page moved, ...).

    Args:
        resource: Name of the list resource (units, admins, ...).
        event: Event type/name.
        level: Log level (default INFO).
        **fields: Additional fields to include in the log.
    """
    logger = get_logger(f"list.{resource}")
    context = {k: v for k, v in fields.items() if v is not None}
    logger.log(
        level,
        "LIST_EVENT %s %s",
        resource,
        event,
        extra={"component": "list_controller", "operation": event, "resource": resource, "context_data": context},
    )
