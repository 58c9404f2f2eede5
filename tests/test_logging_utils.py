"""
Tests for logging helpers.
"""

import logging

import pytest

from timesheet_submitter.logging_utils import (
    ColoredFormatter,
    get_logger,
    log_timer,
    setup_logging,
)


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__(logging.DEBUG)
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def recorder():
    logger = setup_logging(verbose=True, use_colors=False)
    handler = RecordingHandler()
    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_single_handler(self):
        """Test that repeated setup does not stack handlers."""
        setup_logging()
        logger = setup_logging(verbose=True)

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert get_logger() is logger

    def test_colored_formatter_restores_levelname(self):
        """Test that colouring does not leak into the record."""
        record = logging.LogRecord('x', logging.WARNING, __file__, 1, "msg", None, None)

        formatted = ColoredFormatter('%(levelname)s %(message)s').format(record)

        assert '\033[33m' in formatted
        assert record.levelname == 'WARNING'


class TestLogTimer:
    """Tests for log_timer()."""

    def test_outcome_logged(self, recorder):
        """Test that the outcome set inside the block is logged."""
        with log_timer("row-submit") as timing:
            timing['outcome'] = 'success'

        assert any("[timer] row-submit" in m and "(success)" in m for m in recorder.messages)

    def test_error_outcome(self, recorder):
        """Test that an exception marks the outcome as error and propagates."""
        with pytest.raises(RuntimeError):
            with log_timer("login"):
                raise RuntimeError("boom")

        assert any("[timer] login" in m and "(error)" in m for m in recorder.messages)
