import json
import logging

from osw.utils.logging import ComponentFilter, JSONFormatter, configure_logging, get_logger


def _record(**extra) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "osw.test", "levelname": "INFO", "msg": "hello %s", "args": ("world",)})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_extras_as_fields():
    payload = json.loads(JSONFormatter().format(_record(leg_id="c185", rows=15)))

    assert payload["message"] == "hello world"
    assert payload["logger"] == "osw.test"
    assert payload["leg_id"] == "c185"
    assert payload["rows"] == 15
    assert "args" not in payload


def test_component_filter_does_not_override_explicit_component():
    record = _record(component="explicit")
    ComponentFilter("default").filter(record)

    assert record.component == "explicit"


def test_get_logger_adds_component_filter_once():
    logger = get_logger("osw.test.once", component="unit")
    get_logger("osw.test.once", component="unit")

    assert sum(isinstance(f, ComponentFilter) for f in logger.filters) == 1


def test_configure_logging_reads_level_from_env(monkeypatch):
    monkeypatch.setenv("OSW_LOG_LEVEL", "warning")
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(component="cli")
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
