"""Unit tests for immunotracker.utils.logging module."""

import logging
import os
import time

import pytest

from immunotracker.config.settings import TrackerSettings
from immunotracker.utils.logging import (
    VERBOSE,
    AutoColoredFormatter,
    TimestampedFileHandler,
    get_log_level,
    get_logger,
    setup_logging,
)


@pytest.fixture
def settings(tmp_path) -> TrackerSettings:
    return TrackerSettings(config_dir=tmp_path / "config", data_dir=tmp_path / "data")


@pytest.fixture(autouse=True)
def _restore_package_logger():
    yield
    for handler in logging.getLogger("immunotracker").handlers:
        handler.close()
    logging.getLogger("immunotracker").handlers.clear()


class TestLogLevels:
    @pytest.mark.parametrize(
        "name,expected",
        [("DEBUG", logging.DEBUG), ("verbose", VERBOSE), ("Info", logging.INFO)],
    )
    def test_known_levels(self, name, expected):
        assert get_log_level(name) == expected

    def test_unknown_level(self):
        with pytest.raises(AttributeError):
            get_log_level("LOUD")

    def test_verbose_sits_between_debug_and_info(self):
        assert logging.DEBUG < VERBOSE < logging.INFO
        assert logging.getLevelName(VERBOSE) == "VERBOSE"

    def test_logger_verbose_method(self, caplog):
        logger = get_logger("tests.verbose")
        with caplog.at_level(VERBOSE, logger="immunotracker"):
            logger.verbose("detail %s", 1)

        assert caplog.records[-1].levelname == "VERBOSE"
        assert caplog.records[-1].getMessage() == "detail 1"


class TestGetLogger:
    def test_namespaces_under_package(self):
        assert get_logger("sync").name == "immunotracker.sync"

    def test_package_names_unchanged(self):
        assert get_logger("immunotracker.cache").name == "immunotracker.cache"


class TestFormatter:
    def test_no_colors_when_disabled(self):
        formatter = AutoColoredFormatter("%(levelname)s %(message)s", enable_colors=False)
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, None)

        assert formatter.color_mode == "none"
        assert formatter.format(record) == "ERROR failed"

    def test_colors_wrap_level_name(self):
        formatter = AutoColoredFormatter("%(levelname)s %(message)s", enable_colors=False)
        formatter.color_mode = "basic"
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)

        assert formatter.format(record) == "\033[33mWARNING\033[0m careful"


class TestTimestampedFileHandler:
    def test_creates_prefixed_file(self, tmp_path):
        handler = TimestampedFileHandler(tmp_path / "logs", prefix="tracker")
        try:
            files = list((tmp_path / "logs").glob("tracker_*.log"))
            assert len(files) == 1
        finally:
            handler.close()

    def test_prunes_oldest_files(self, tmp_path):
        log_dir = tmp_path / "logs"
        log_dir.mkdir()
        old = time.time() - 1000
        for i in range(4):
            path = log_dir / f"tracker_2024010{i}_000000.log"
            path.write_text("old")
            os.utime(path, (old + i, old + i))

        handler = TimestampedFileHandler(log_dir, prefix="tracker", max_files=2)
        try:
            remaining = sorted(p.name for p in log_dir.glob("tracker_*.log"))
            assert len(remaining) == 2
            assert "tracker_20240103_000000.log" in remaining
            assert "tracker_20240100_000000.log" not in remaining
        finally:
            handler.close()


class TestSetupLogging:
    """Tests for configuring the package logger from settings."""

    def test_console_only_by_default(self, settings):
        logger = setup_logging(settings)

        assert logger.name == "immunotracker"
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.INFO

    def test_file_logging_defaults_to_data_dir(self, settings):
        settings.logging.file_enabled = True

        logger = setup_logging(settings)

        file_handlers = [h for h in logger.handlers if isinstance(h, TimestampedFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].log_dir == settings.data_dir / "logs"
        assert file_handlers[0].level == logging.DEBUG

    def test_custom_directory_and_levels(self, settings, tmp_path):
        settings.logging.file_enabled = True
        settings.logging.file_directory = str(tmp_path / "custom")
        settings.logging.console_enabled = False
        settings.logging.file_level = "WARNING"

        logger = setup_logging(settings)

        [handler] = logger.handlers
        assert handler.log_dir == tmp_path / "custom"
        assert handler.level == logging.WARNING

    def test_repeated_setup_replaces_handlers(self, settings):
        setup_logging(settings)
        logger = setup_logging(settings)

        assert len(logger.handlers) == 1

    def test_third_party_loggers_quietened(self, settings):
        setup_logging(settings)
        assert logging.getLogger("httpx").level == logging.WARNING
