"""Test logging setup and the auto-sort failure report"""

import logging

import pytest

from playlist_manager.core.logger import (
    AutoSortFailureHandler,
    get_logger,
    log_auto_sort_failure,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture
def restore_root_logger():
    """setup_logging replaces the root handlers; put pytest's back afterwards"""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    shutdown_logging()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestAutoSortFailureHandler:
    """Test the failure report file"""

    def test_only_failure_records_are_written(self, tmp_path):
        handler = AutoSortFailureHandler(tmp_path / "failures.log")
        handler.open()
        logger = logging.getLogger("test.auto_sort_report")
        logger.addHandler(handler)
        logger.propagate = False

        try:
            logger.error("unrelated error")
            log_auto_sort_failure(logger, "user-1", "pl-1", "Playlist not found: pl-1")
        finally:
            logger.removeHandler(handler)
            logger.propagate = True
            handler.close()

        content = (tmp_path / "failures.log").read_text(encoding="utf-8")
        assert content == "user user-1 / playlist pl-1\nPlaylist not found: pl-1\n\n"

    def test_close_twice(self, tmp_path):
        handler = AutoSortFailureHandler(tmp_path / "failures.log")
        handler.open()
        handler.close()
        handler.close()


class TestSetupLogging:
    """Test handler wiring"""

    def test_files_created(self, tmp_path, restore_root_logger):
        setup_logging(tmp_path / "logs")

        logger = get_logger("playlist_manager.test")
        logger.debug("debug line")
        logger.error("error line")
        log_auto_sort_failure(logger, "u", "p", "boom")
        shutdown_logging()

        files = {path.name.rsplit("_", 2)[0]: path for path in (tmp_path / "logs").iterdir()}
        assert set(files) == {"log_full", "log_errors", "auto_sort_failures"}

        full = files["log_full"].read_text(encoding="utf-8")
        errors = files["log_errors"].read_text(encoding="utf-8")
        assert "debug line" in full and "error line" in full
        assert "debug line" not in errors and "error line" in errors
        assert "user u / playlist p" in files["auto_sort_failures"].read_text(encoding="utf-8")
