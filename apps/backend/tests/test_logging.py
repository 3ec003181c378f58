import json
import logging
import sys

from ledgerly.core.config import Settings
from ledgerly.core.logging_config import JSONFormatter, get_logger, setup_logging


def _record(msg="hello", **extra):
    record = logging.LogRecord("ledgerly.store", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    payload = json.loads(JSONFormatter().format(_record(account_id=7, operation="transfer")))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "ledgerly.store"
    assert payload["message"] == "hello"
    assert payload["extra"] == {"account_id": 7, "operation": "transfer"}


def test_json_formatter_serializes_exceptions():
    try:
        raise ValueError("bad value")
    except ValueError:
        record = logging.LogRecord("ledgerly", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    payload = json.loads(JSONFormatter().format(record))
    assert payload["exception"]["type"] == "ValueError"
    assert payload["exception"]["message"] == "bad value"
    assert "Traceback" in payload["exception"]["traceback"]


def test_get_logger_nests_under_package_logger():
    assert get_logger("store").name == "ledgerly.store"
    assert get_logger("ledgerly.backend.sql").name == "ledgerly.backend.sql"
    assert get_logger("ledgerly").name == "ledgerly"


def test_setup_logging_is_idempotent():
    config = Settings(LOG_LEVEL="debug", LOG_JSON=True)
    try:
        logger = setup_logging(config)
        setup_logging(config)

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
    finally:
        setup_logging(Settings(LOG_LEVEL="info", LOG_JSON=False))
