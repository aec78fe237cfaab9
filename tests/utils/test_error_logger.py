"""Tests for structured error and list event logging."""

import logging
from unittest.mock import Mock

from church_dashboard.services.errors import NetworkFailure
from church_dashboard.utils.error_logger import (
    _extract_http_details,
    log_error,
    log_http_error,
    log_list_event,
)


def test_log_error_attaches_structured_fields(caplog):
    error = NetworkFailure("down", status_code=503)

    with caplog.at_level(logging.WARNING):
        log_error(
            "list_controller",
            error,
            operation="page_forward",
            context={"resource": "units", "page": 2},
            level=logging.WARNING,
        )

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.component == "list_controller"
    assert record.operation == "page_forward"
    assert record.context_data == {"resource": "units", "page": 2}
    assert record.error_type == "NetworkFailure"
    assert "list_controller error during page_forward: down" in record.getMessage()


def test_log_http_error_includes_url_and_response(caplog):
    response = Mock()
    response.status_code = 500
    response.request.method = "GET"
    response.request.url = "https://api.example.org/church/all-units"
    response.text = "Internal Server Error"

    with caplog.at_level(logging.ERROR):
        log_http_error("api_client", "/church/all-units", response=response)

    record = caplog.records[-1]
    assert record.context_data == {"url": "/church/all-units"}
    assert record.http_details["status_code"] == 500
    assert record.http_details["method"] == "GET"
    assert "status: 500" in record.error_message


def test_extract_http_details_truncates_body():
    response = Mock(spec=["status_code", "text"])
    response.status_code = 200
    response.text = "x" * 5000

    details = _extract_http_details(response)

    assert len(details["response_body"]) == 1000
    assert "method" not in details


def test_log_list_event_drops_empty_fields(caplog):
    with caplog.at_level(logging.INFO):
        log_list_event(resource="units", event="search_degraded", reason="network_failure", ignored_fields=None)

    record = caplog.records[-1]
    assert record.getMessage() == "LIST_EVENT units search_degraded"
    assert record.resource == "units"
    assert record.context_data == {"reason": "network_failure"}
