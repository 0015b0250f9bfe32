import json
import logging
import sys

from program_indexer.utils.logging import CustomLogger, JsonFormatter


def test_extra_fields_are_nested_in_json_output():
    logger = CustomLogger("test_logger")
    record = logger.makeRecord(
        "test_logger",
        logging.INFO,
        __file__,
        10,
        "[Indexer] Ensured program table",
        (),
        None,
        extra={"table_name": "program_abc"},
    )

    output = json.loads(JsonFormatter().format(record))

    assert output["level"] == "INFO"
    assert output["fields"] == {
        "message": "[Indexer] Ensured program table",
        "table_name": "program_abc",
    }
    assert output["line_no"] == 10


def test_exception_is_included():
    logger = CustomLogger("test_logger")
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logger.makeRecord(
            "test_logger", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
        )

    output = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in output["fields"]["exception"]
