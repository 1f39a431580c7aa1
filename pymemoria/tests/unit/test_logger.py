"""Unit tests for logging configuration."""

import logging

from pymemoria.utils.logger import get_logger, set_level


class TestLogger:
    """Test logger setup."""

    def test_get_logger_configures_once(self):
        """Test that repeated calls do not add handlers."""
        logger = get_logger("pymemoria.tests.once")
        again = get_logger("pymemoria.tests.once")
        assert logger is again
        assert len(logger.handlers) == 1

    def test_explicit_level(self):
        """Test creating a logger with an explicit level."""
        assert get_logger("pymemoria.tests.level", logging.WARNING).level == logging.WARNING

    def test_set_level_only_touches_pymemoria_loggers(self):
        """Test that set_level leaves foreign loggers alone."""
        ours = get_logger("pymemoria.tests.set_level")
        theirs = get_logger("othertool.module", logging.INFO)

        set_level("DEBUG")
        try:
            assert ours.level == logging.DEBUG
            assert theirs.level == logging.INFO
        finally:
            set_level(logging.INFO)
