"""Tests for structured logging."""

import json
import logging

import pytest

from capstone_approvals.infra.observability.logging import (
    CorrelationIDFilter,
    JSONFormatter,
    correlation_id_var,
    get_correlation_id,
    set_correlation_id,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _clear_correlation_id():
    token = correlation_id_var.set(None)
    yield
    correlation_id_var.reset(token)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="capstone_approvals.domain.services.approval",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Decision recorded",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_get_correlation_id_generates_once() -> None:
    first = get_correlation_id()

    assert first
    assert get_correlation_id() == first


def test_filter_injects_correlation_id() -> None:
    set_correlation_id("corr-123")
    record = make_record()

    assert CorrelationIDFilter().filter(record) is True
    assert record.correlation_id == "corr-123"


def test_json_formatter_includes_approval_fields() -> None:
    record = make_record(
        correlation_id="corr-9",
        approval_request_id=12,
        user_id=7,
        decision="approved",
        unrelated="dropped",
    )

    entry = json.loads(JSONFormatter().format(record))

    assert entry["level"] == "INFO"
    assert entry["component"] == "capstone_approvals.domain.services.approval"
    assert entry["message"] == "Decision recorded"
    assert entry["correlation_id"] == "corr-9"
    assert entry["approval_request_id"] == 12
    assert entry["user_id"] == 7
    assert entry["decision"] == "approved"
    assert "unrelated" not in entry


def test_json_formatter_renders_exceptions() -> None:
    try:
        raise RuntimeError("handler failed")
    except RuntimeError:
        import sys

        record = make_record()
        record.exc_info = sys.exc_info()

    entry = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: handler failed" in entry["exception"]


def test_setup_logging_configures_root_logger(tmp_path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    log_file = tmp_path / "approvals.log"

    try:
        setup_logging(level="DEBUG", json_format=False, log_file=str(log_file))

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert isinstance(root.handlers[1].formatter, JSONFormatter)
        assert log_file.exists()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
