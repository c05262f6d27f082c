"""Tests for sensitive data filtering and request correlation in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def log_stream():
    """Logger wired with the production filters and formatter."""

    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_sensitive_filter_redacts_admin_secret(log_stream):
    logger, stream = log_stream

    logger.info(
        "admin_event",
        extra={
            "admin_secret": "s3cret-value",
            "x-delete-secret": "header-value",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "s3cret-value" not in output
    assert "header-value" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_allows_safe_fields(log_stream):
    logger, stream = log_stream

    logger.info(
        "link.created",
        extra={"link_id": "abc", "short_code": "Ab3kPqx", "ttl": "1_week"},
    )

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "link.created"
    assert payload["short_code"] == "Ab3kPqx"
    assert payload["ttl"] == "1_week"
    assert "[REDACTED]" not in stream.getvalue()


def test_sensitive_filter_redacts_nested_dicts(log_stream):
    logger, stream = log_stream

    logger.info(
        "nested_event",
        extra={
            "headers": {"X-Delete-Secret": "nested-secret", "user-agent": "pytest"},
            "safe_data": {"count": 5},
        },
    )

    payload = json.loads(stream.getvalue())
    assert payload["headers"]["X-Delete-Secret"] == "[REDACTED]"
    assert payload["headers"]["user-agent"] == "pytest"
    assert payload["safe_data"] == {"count": 5}


def test_request_id_from_context_is_attached(log_stream):
    logger, stream = log_stream
    set_request_id("req-123")

    logger.info("with_context")

    assert json.loads(stream.getvalue())["request_id"] == "req-123"


def test_exception_info_is_serialized(log_stream):
    logger, stream = log_stream

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("failed")

    payload = json.loads(stream.getvalue())
    assert payload["level"] == "error"
    assert "RuntimeError: boom" in payload["exc_info"]
