from __future__ import annotations

import logging
from io import StringIO

from validation_wizard.logging.init import (
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    set_debug,
    setup_logging,
)


def test_setup_logging_creates_logger_with_labeled_formatter():
    """setup_logging installs one stdout handler on the package logger."""
    logger = setup_logging()

    assert logger.name == "validation_wizard"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent():
    first = setup_logging()
    assert setup_logging() is first
    assert get_logger() is first
    assert len(first.handlers) == 1


def test_labeled_prefixes():
    """Each level renders as LABEL message (INFO|WARN|ERROR|SUMMARY)."""
    formatter = LabeledFormatter()

    def render(level: int) -> str:
        record = logging.LogRecord("x", level, __file__, 1, "hello %s", ("world",), None)
        return formatter.format(record)

    assert render(logging.INFO) == "INFO hello world"
    assert render(logging.WARNING) == "WARN hello world"
    assert render(logging.ERROR) == "ERROR hello world"
    assert render(SUMMARY_LEVEL) == "SUMMARY hello world"
    assert render(logging.DEBUG) == "DEBUG hello world"


def test_child_loggers_reach_the_handler(capsys):
    setup_logging()
    logging.getLogger("validation_wizard.services.detection").info("detect phase=generic")
    log_summary("rows=1")
    out = capsys.readouterr().out
    assert "INFO detect phase=generic" in out
    assert "SUMMARY rows=1" in out


def test_set_debug_lowers_levels():
    logger = setup_logging()
    stream = StringIO()
    logger.handlers[0].setStream(stream)
    logger.debug("hidden")
    set_debug(logger)
    logger.debug("shown")
    assert stream.getvalue() == "DEBUG shown\n"


def test_reset_logging_restores_propagation():
    logger = setup_logging()
    reset_logging()
    assert logger.handlers == []
    assert logger.propagate is True
