"""
Tests for starter_core logging formatters.
"""

import json
import logging

from starter_core.logging import JsonFormatter, TextFormatter, setup_logging


def make_record(**extra):
    record = logging.LogRecord(
        "task_dispatch.producer", logging.INFO, __file__, 1, "Queued %s task", ("email",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    line = JsonFormatter().format(make_record(kind="email", msg_id="1-0"))

    data = json.loads(line)
    assert data["message"] == "Queued email task"
    assert data["level"] == "INFO"
    assert data["logger"] == "task_dispatch.producer"
    assert data["kind"] == "email"
    assert data["msg_id"] == "1-0"


def test_text_formatter_appends_extra_fields():
    line = TextFormatter().format(make_record(count=3))

    assert "Queued email task" in line
    assert line.endswith("count=3")


def test_setup_logging_replaces_its_handler():
    root = logging.getLogger()

    setup_logging(level="debug", fmt="json")
    setup_logging(level="info", fmt="text")

    ours = [h for h in root.handlers if getattr(h, "_starter_core", False)]
    assert len(ours) == 1
    assert isinstance(ours[0].formatter, TextFormatter)
    assert root.level == logging.INFO


def test_json_formatter_keeps_its_own_timestamp():
    line = JsonFormatter().format(make_record(timestamp=1700000000000, level="nope"))

    data = json.loads(line)
    assert isinstance(data["timestamp"], str)
    assert data["timestamp"].endswith("+00:00")
    assert data["level"] == "INFO"
