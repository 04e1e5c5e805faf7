"""
Logging configuration tests
"""
import logging

import pytest

from utils import logging_utils
from utils.logging_utils import configure_logging


@pytest.fixture
def app_handler(settings):
    configure_logging(settings)
    handlers = [h for h in logging.getLogger().handlers if getattr(h, "_template_backend", False)]
    yield handlers[0]
    for handler in handlers:
        logging.getLogger().removeHandler(handler)
        handler.close()


def _format(handler, record):
    assert handler.filter(record)
    return handler.format(record)


def test_event_fields_are_printed(app_handler):
    record = logging.getLogger(logging_utils.SERVICE_NAME).makeRecord(
        logging_utils.SERVICE_NAME,
        logging.WARNING,
        __file__,
        1,
        "Security event rate_limited severity=low",
        None,
        None,
        extra=logging_utils._extra("security", event="rate_limited"),
    )

    line = _format(app_handler, record)

    assert "[template-backend test security]" in line
    assert line.endswith("Security event rate_limited severity=low")


def test_plain_records_get_default_fields(app_handler):
    record = logging.getLogger("routers.users_router").makeRecord(
        "routers.users_router", logging.INFO, __file__, 1, "hello", None, None
    )

    assert "[template-backend test app] hello" in _format(app_handler, record)


def test_configure_logging_is_idempotent(settings):
    configure_logging(settings)
    configure_logging(settings)

    tagged = [h for h in logging.getLogger().handlers if getattr(h, "_template_backend", False)]
    assert len(tagged) == 1
    for handler in tagged:
        logging.getLogger().removeHandler(handler)
        handler.close()
