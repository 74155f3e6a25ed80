from __future__ import annotations

import json
import logging
import sys

import pytest

from academy.core.logging import (
    _ContainerFormatter,
    _JsonFormatter,
    _RequestContextFilter,
    request_id_var,
    setup_logging,
)


def _record(
    level: int = logging.INFO, msg: str = "hello", **extra: object
) -> logging.LogRecord:
    record = logging.LogRecord(
        name="academy.test",
        level=level,
        pathname="svc.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# --- setup_logging ---


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_noisy_libraries_at_debug() -> None:
    setup_logging("debug")
    for name in ("uvicorn", "httpx", "sqlalchemy.engine"):
        assert logging.getLogger(name).level == logging.WARNING


def test_setup_logging_installs_one_handler_with_request_filter() -> None:
    setup_logging("info", json_format=True)
    setup_logging("info", json_format=True)
    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, _JsonFormatter)
    assert any(isinstance(f, _RequestContextFilter) for f in handlers[0].filters)


# --- request id ---


def test_filter_copies_request_id_from_context() -> None:
    token = request_id_var.set("req-abc")
    try:
        record = _record()
        _RequestContextFilter().filter(record)
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-abc"  # type: ignore[attr-defined]


def test_filter_keeps_explicit_request_id() -> None:
    record = _record(request_id="explicit")
    _RequestContextFilter().filter(record)
    assert record.request_id == "explicit"  # type: ignore[attr-defined]


def test_container_formatter_shows_request_id() -> None:
    output = _ContainerFormatter().format(_record(request_id="req-42"))
    assert "[req-42]" in output


def test_container_formatter_defaults_request_id_outside_requests() -> None:
    output = _ContainerFormatter().format(_record())
    assert "[-]" in output


# --- location suffix ---


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO))
    assert "hello" in output
    assert "[svc.py:" not in output


@pytest.mark.parametrize("level", [logging.WARNING, logging.ERROR])
def test_formatter_includes_location_for_warning_and_above(level: int) -> None:
    output = _ContainerFormatter().format(_record(level, "denied"))
    assert "denied" in output
    assert "[svc.py:42]" in output


# --- JSON output ---


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record(msg="Hello world")))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "academy.test"
    assert parsed["message"] == "Hello world"
    assert "timestamp" in parsed


def test_json_formatter_includes_request_context_fields() -> None:
    record = _record(
        request_id="abc-123",
        method="POST",
        path="/v1/orgs",
        subject_id="5a1f",
        status_code=201,
        duration_ms=12.5,
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["method"] == "POST"
    assert parsed["path"] == "/v1/orgs"
    assert parsed["subject_id"] == "5a1f"
    assert parsed["status_code"] == 201
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise ValueError("test error")
    except ValueError:
        record = _record(logging.ERROR, "Something failed")
        record.exc_info = sys.exc_info()
        output = _JsonFormatter().format(record)

    parsed = json.loads(output)
    assert "ValueError: test error" in parsed["exception"]
