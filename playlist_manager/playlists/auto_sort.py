"""
Scheduled auto-sort for playlist-manager.

AutoSortDriver runs one pass: for every user with a non-empty auto-sort
set, sort each opted-in playlist by release date. A failing playlist is
logged (console, error log and auto_sort_failures report) and the pass
moves on to the next playlist; one failure never aborts the others.

AutoSortScheduler fires the driver once a day at a fixed local time and
sleeps on a threading.Event in between, so stop() ends the loop without
waiting for the next fire time.

Usage:
    driver = AutoSortDriver(database, orchestrator)
    scheduler = AutoSortScheduler(driver, hour=12, minute=0)
    scheduler.run_forever()  # until scheduler.stop()
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from tqdm import tqdm

from playlist_manager.core.database import Database
from playlist_manager.core.exceptions import PlaylistManagerError
from playlist_manager.core.logger import get_logger, log_auto_sort_failure
from playlist_manager.playlists.orchestrator import PlaylistOrchestrator

logger = get_logger(__name__)


@dataclass
class AutoSortReport:
    """Outcome of one auto-sort pass."""
    sorted: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[str, str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.sorted) + len(self.failed)


class AutoSortDriver:
    """
    One auto-sort pass over every user's opted-in playlists.

    A playlist that fails is logged to the failure report and skipped;
    the pass goes on with the next one.
    """

    def __init__(
        self,
        database: Database,
        orchestrator: PlaylistOrchestrator,
        logger: logging.Logger | None = None
    ) -> None:
        self.database = database
        self.orchestrator = orchestrator
        self._logger = logger or get_logger(__name__)

    def run_once(
        self,
        cancel_event: threading.Event | None = None,
        show_progress: bool = False
    ) -> AutoSortReport:
        """
        Sort every opted-in playlist of every user.

        Args:
            cancel_event: Stops the pass before the next playlist, and is
                          handed to each sort so it stops between batches.
            show_progress: Display a tqdm progress bar over the playlists.

        Returns:
            AutoSortReport listing sorted and failed (user, playlist) pairs.
        """
        jobs = [
            (user["id"], playlist_id)
            for user in self.database.get_users_with_auto_sort()
            for playlist_id in user["auto_sort_playlists"]
        ]
        self._logger.info(f"Auto-sort pass started: {len(jobs)} playlist(s)")

        report = AutoSortReport()
        iterator = tqdm(jobs, desc="Auto-sort", unit="playlist") if show_progress else jobs

        for user_id, playlist_id in iterator:
            if cancel_event is not None and cancel_event.is_set():
                self._logger.warning("Auto-sort pass cancelled")
                break

            try:
                self.orchestrator.sort_by_release_date(user_id, playlist_id, cancel_event)
            except Exception as e:
                if not isinstance(e, PlaylistManagerError):
                    self._logger.debug("Unexpected auto-sort error", exc_info=True)
                log_auto_sort_failure(self._logger, user_id, playlist_id, str(e))
                report.failed.append((user_id, playlist_id, str(e)))
                continue

            report.sorted.append((user_id, playlist_id))

        self._logger.info(
            f"Auto-sort pass finished: {len(report.sorted)} sorted, {len(report.failed)} failed"
        )
        return report


class AutoSortScheduler:
    """
    Runs an AutoSortDriver every day at hour:minute local time.
    """

    def __init__(
        self,
        driver: AutoSortDriver,
        hour: int = 12,
        minute: int = 0,
        clock: Callable[[], datetime] = datetime.now
    ) -> None:
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise ValueError(f"Invalid time of day: {hour:02d}:{minute:02d}")

        self.driver = driver
        self.hour = hour
        self.minute = minute
        self._clock = clock
        self._stop_event = threading.Event()

    def next_run(self, now: datetime) -> datetime:
        """First fire time strictly after now."""
        candidate = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    def run_forever(self) -> None:
        """Block, running a pass at every fire time, until stop() is called."""
        while not self._stop_event.is_set():
            now = self._clock()
            fire_at = self.next_run(now)
            logger.info(f"Next auto-sort pass at {fire_at:%Y-%m-%d %H:%M}")

            if self._stop_event.wait((fire_at - now).total_seconds()):
                break
            self.driver.run_once(cancel_event=self._stop_event)

        logger.info("Auto-sort scheduler stopped")

    def stop(self) -> None:
        self._stop_event.set()
