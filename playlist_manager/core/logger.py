"""
Logging configuration for playlist-manager.

This module sets up the logging system with multiple outputs:
    - Console: Coloured, tqdm-compatible output (INFO and above)
    - log_full_<timestamp>.log: Complete log of all events (DEBUG and above)
    - log_errors_<timestamp>.log: Only ERROR and CRITICAL level messages
    - auto_sort_failures_<timestamp>.log: Playlists the daily auto-sort
      pass could not sort, with the owning user and the reason

Usage:
    from playlist_manager.core.logger import setup_logging, get_logger

    setup_logging(log_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Sorting playlist")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to the console without breaking tqdm bars.

    The auto-sort pass shows a progress bar over the opted-in playlists;
    plain stderr writes would tear it apart. tqdm.write() prints above any
    active bar instead.
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class AutoSortFailureHandler(logging.Handler):
    """
    Handler that captures auto-sort failures for the failure report file.

    Records carrying the 'auto_sort_failed_playlist_id' extra field are
    written to auto_sort_failures.log in a human-readable format:

        user 3f2a... / playlist 37i9dQZF1DXcBWIGoYBM5M
        Failed to fetch playlist items: 429 rate limited

    Every other record is ignored.

    Usage:
        log_auto_sort_failure(logger, user_id, playlist_id, "reason")
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "auto_sort_failed_playlist_id"):
            return

        if self.report_file is None:
            return

        try:
            user_id = getattr(record, "auto_sort_failed_user_id", "unknown")
            playlist_id = getattr(record, "auto_sort_failed_playlist_id")
            reason = getattr(record, "auto_sort_failed_reason", "")

            self.report_file.write(f"user {user_id} / playlist {playlist_id}\n")
            self.report_file.write(f"{reason}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, console_level: int = logging.INFO) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        log_dir: Directory where log files will be created.
                 Created if it does not exist.
        console_level: Minimum level printed on the console.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Generate timestamp for this run's log files
        3. Configure root logger level to DEBUG
        4. Add the console handler (TqdmLoggingHandler, coloured)
        5. Add the full and error-only log file handlers
        6. Add the auto-sort failure report handler

    Thread Safety:
        NOT thread-safe. Call it once from the main thread before starting
        the scheduler.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(log_dir / f"log_full_{timestamp}.log", mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(log_dir / f"log_errors_{timestamp}.log", mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_handler = AutoSortFailureHandler(log_dir / f"auto_sort_failures_{timestamp}.log")
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    # spotipy and urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("spotipy").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Note:
        Loggers obtained before setup_logging() is called have no handlers
        of their own and rely on whatever the root logger has.
    """
    return logging.getLogger(name)


def log_auto_sort_failure(
    logger: logging.Logger,
    user_id: str,
    playlist_id: str,
    reason: str
) -> None:
    """
    Log a playlist the auto-sort pass failed to sort.

    Logs an ERROR level message and attaches the extra fields that
    AutoSortFailureHandler writes to auto_sort_failures.log.
    """
    logger.error(
        f"Auto-sort failed for playlist {playlist_id} of user {user_id}: {reason}",
        extra={
            "auto_sort_failed_user_id": user_id,
            "auto_sort_failed_playlist_id": playlist_id,
            "auto_sort_failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and detach every handler of the root logger.

    Typically called in a finally block at CLI exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
        root_logger.removeHandler(handler)
