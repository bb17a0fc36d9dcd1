"""
Tests for structured logging
"""

import io

import orjson
import pytest

from taggedpyxm.utils.logger import (
    JsonFormatter,
    Logger,
    LogLevel,
    LogRecord,
    MemoryHandler,
    StreamHandler,
    TextFormatter,
    configure_logging,
    get_logger,
)


@pytest.fixture
def memory_logger():
    handler = MemoryHandler()
    return Logger("taggedpyxm.test", level=LogLevel.DEBUG, handlers=[handler]), handler


def test_level_parsing():
    assert LogLevel.parse("warning") == LogLevel.WARNING
    assert LogLevel.parse(LogLevel.ERROR) == LogLevel.ERROR
    with pytest.raises(ValueError):
        LogLevel.parse("loud")


def test_records_carry_context(memory_logger):
    logger, handler = memory_logger
    logger.with_context(template="page.pyxm").info("Compiled", elapsed_ms=1.5)

    record = handler.records[0]
    assert record.message == "Compiled"
    assert record.context == {"template": "page.pyxm", "elapsed_ms": 1.5}


def test_level_filtering(memory_logger):
    logger, handler = memory_logger
    logger.level = LogLevel.WARNING
    logger.info("dropped")
    logger.error("kept")

    assert [record.message for record in handler.records] == ["kept"]


def test_child_logger_inherits_handlers():
    handler = MemoryHandler()
    parent = Logger("parent", level=LogLevel.INFO, handlers=[handler])
    child = Logger("parent.child", parent=parent)

    child.debug("below parent level")
    child.info("hello")

    assert child.effective_level == LogLevel.INFO
    assert [record.logger_name for record in handler.records] == ["parent.child"]


def test_get_logger_is_hierarchical():
    logger = get_logger("taggedpyxm.some.module")

    assert logger is get_logger("taggedpyxm.some.module")
    assert logger.parent is get_logger("taggedpyxm.some")


def test_text_formatter():
    record = LogRecord(level=LogLevel.INFO, message="Compiled", context={"template": "a.pyxm"})

    output = TextFormatter(colors=False).format(record)

    assert "[INFO] Compiled template=a.pyxm" in output


def test_json_formatter():
    record = LogRecord(level=LogLevel.ERROR, message="Broken", context={"line": 3})

    data = orjson.loads(JsonFormatter().format(record))

    assert data["level"] == "ERROR"
    assert data["message"] == "Broken"
    assert data["context"] == {"line": 3}


def test_exception_in_json():
    try:
        raise KeyError("missing")
    except KeyError as e:
        record = LogRecord(level=LogLevel.ERROR, message="Failed", exception=e)

    data = orjson.loads(record.to_json())
    assert data["exception"]["type"] == "KeyError"


def test_configure_logging_json():
    stream = io.StringIO()
    root = configure_logging(level="debug", format="json", stream=stream)
    try:
        get_logger("taggedpyxm.engine").debug("Compiled template", template="x.pyxm")
    finally:
        configure_logging()

    assert root.level == LogLevel.DEBUG
    line = stream.getvalue().strip().splitlines()[-1]
    assert orjson.loads(line)["context"] == {"template": "x.pyxm"}


def test_configure_logging_rejects_unknown_format():
    with pytest.raises(ValueError):
        configure_logging(format="xml")


def test_stream_handler_writes_lines():
    stream = io.StringIO()
    handler = StreamHandler(stream=stream, formatter=TextFormatter(colors=False))
    Logger("plain", level=LogLevel.INFO, handlers=[handler]).warning("careful")

    assert stream.getvalue().endswith("[WARNING] careful\n")
