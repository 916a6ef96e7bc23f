"""Tests for logging utilities."""

import logging

import pytest

from common.logger import error, get_logger, setup_logging, success


class TestGetLogger:
    """Tests for get_logger function."""

    def test_returns_logger_instance(self):
        """Test that get_logger returns a logger instance."""
        logger = get_logger("test")
        assert isinstance(logger, logging.Logger)

    def test_logger_name(self):
        """Test that logger has correct name."""
        logger = get_logger("test.module")
        assert logger.name == "test.module"

    def test_default_level_is_info(self):
        """Test that default logging level is INFO."""
        logger = get_logger("test.default")
        assert logger.level == logging.INFO

    def test_custom_level(self):
        """Test that custom logging level can be set."""
        logger = get_logger("test.custom", level="DEBUG")
        assert logger.level == logging.DEBUG

    def test_logger_has_handler(self):
        """Test that logger is configured with a handler."""
        logger = get_logger("test.handler")
        assert len(logger.handlers) > 0

    def test_reuses_existing_logger(self):
        """Test that get_logger reuses existing logger instance."""
        logger1 = get_logger("test.reuse")
        logger2 = get_logger("test.reuse")
        assert logger1 is logger2
        # Should not add duplicate handlers
        assert len(logger1.handlers) == len(logger2.handlers)

    def test_logging_output(self, caplog):
        """Test that logging actually produces output."""
        logger = get_logger("test.output")

        with caplog.at_level(logging.INFO):
            logger.info("Test message")

        assert "Test message" in caplog.text

    def test_log_levels(self, caplog):
        """Test different log levels."""
        logger = get_logger("test.levels", level="DEBUG")

        with caplog.at_level(logging.DEBUG):
            logger.debug("Debug message")
            logger.info("Info message")
            logger.warning("Warning message")
            logger.error("Error message")

        assert "Debug message" in caplog.text
        assert "Info message" in caplog.text
        assert "Warning message" in caplog.text
        assert "Error message" in caplog.text

    def test_info_level_filters_debug(self, caplog):
        """Test that INFO level filters out DEBUG messages."""
        logger = get_logger("test.filter", level="INFO")

        with caplog.at_level(logging.DEBUG):
            logger.debug("This should not appear")
            logger.info("This should appear")

        assert "This should not appear" not in caplog.text
        assert "This should appear" in caplog.text


class TestSetupLogging:
    """Tests for setup_logging function."""

    @pytest.fixture
    def restore_root(self):
        """Restore the root logger after each test."""
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield root
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_sets_root_level(self, restore_root, monkeypatch):
        """Test that setup_logging applies the requested level."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging("WARNING")
        assert restore_root.level == logging.WARNING

    def test_log_level_env_overrides_argument(self, restore_root, monkeypatch):
        """Test that LOG_LEVEL takes precedence over the argument."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        setup_logging("WARNING")
        assert restore_root.level == logging.DEBUG

    def test_log_file(self, restore_root, monkeypatch, tmp_path):
        """Test that records reach the log file."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        log_file = tmp_path / "run.log"
        setup_logging("INFO", log_file=str(log_file))

        logging.getLogger("some.library").info("Written to file")
        for handler in restore_root.handlers:
            handler.flush()

        assert "Written to file" in log_file.read_text()


class TestConsoleHelpers:
    """Tests for the console output helpers."""

    def test_success_prints_to_stdout(self, capsys):
        """Test that success messages go to stdout."""
        success("All done")
        assert "All done" in capsys.readouterr().out

    def test_error_prints_to_stderr(self, capsys):
        """Test that error messages go to stderr."""
        error("Something broke")
        captured = capsys.readouterr()
        assert "Something broke" in captured.err
        assert "Something broke" not in captured.out
