from __future__ import annotations

import io
import logging

from teachme.core.logging import (
    _ContainerFormatter,
    actor_user_id_var,
    request_id_var,
    setup_logging,
)


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_third_party_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_allows_uvicorn_at_error() -> None:
    setup_logging("error")
    assert logging.getLogger("uvicorn").level == logging.ERROR


def test_formatter_excludes_location_for_info() -> None:
    fmt = _ContainerFormatter()
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg="hello",
        args=(),
        exc_info=None,
    )
    output = fmt.format(record)
    assert "hello" in output
    assert "[test.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    fmt = _ContainerFormatter()
    record = logging.LogRecord(
        name="test",
        level=logging.WARNING,
        pathname="test.py",
        lineno=42,
        msg="bad thing",
        args=(),
        exc_info=None,
    )
    output = fmt.format(record)
    assert "bad thing" in output
    assert "[test.py:42]" in output


def test_context_filter_tags_records_from_child_loggers() -> None:
    """Records propagated from module loggers still get the request ID."""
    setup_logging("info", json_format=True)
    handler = logging.getLogger().handlers[0]
    buf = io.StringIO()
    handler.setStream(buf)  # type: ignore[attr-defined]

    rid_token = request_id_var.set("req-child")
    actor_token = actor_user_id_var.set("user-7")
    try:
        logging.getLogger("teachme.services.students_service").info("hello")
    finally:
        request_id_var.reset(rid_token)
        actor_user_id_var.reset(actor_token)

    line = buf.getvalue()
    assert '"request_id": "req-child"' in line
    assert '"actor_user_id": "user-7"' in line
    setup_logging("info")
