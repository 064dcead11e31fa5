"""Periodic incremental scans in a background thread.

Pins follow edits made in an editor without a client having to call
``refresh_pins``. Each pass only re-parses files whose mtime moved.
"""

import logging
import threading
import time

from espresso_mcp.indexer import PinIndexer, ScanResult

logger = logging.getLogger(__name__)


class SyncManager:
    """
    Runs ``PinIndexer.trigger_incremental_scan`` every ``interval`` seconds.

    A pass is skipped while another scan (a tool call or a removal) holds
    the indexer. The thread is a daemon and never outlives the process.
    """

    def __init__(self, indexer: PinIndexer, interval: int):
        if interval <= 0:
            raise ValueError(f"Sync interval must be positive, got {interval}")

        self._indexer = indexer
        self._interval = interval
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None
        self.runs = 0
        self.skipped = 0
        self.last_result: ScanResult | None = None
        self.last_run: float | None = None  # Epoch seconds

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Pin sync already running")
            return

        self._wake.clear()
        self._thread = threading.Thread(target=self._loop, name="espresso-sync", daemon=True)
        self._thread.start()
        logger.info("Pin sync every %ds", self._interval)

    def stop(self) -> None:
        """Stop the thread, waiting at most one interval for it."""
        if not self.is_running:
            return

        self._wake.set()
        self._thread.join(timeout=self._interval + 1)
        if self._thread.is_alive():
            logger.warning("Pin sync thread did not stop in time")
        else:
            logger.info("Pin sync stopped after %d passes (%d skipped)", self.runs, self.skipped)
        self._thread = None

    def run_once(self) -> ScanResult | None:
        """
        Run one incremental pass.

        Returns:
            The scan result, or None when the pass was skipped because a
            scan was already running.
        """
        if self._indexer.is_scanning:
            self.skipped += 1
            logger.debug("Pin sync skipped, scan in progress")
            return None

        result = self._indexer.trigger_incremental_scan()
        self.runs += 1
        self.last_result = result
        self.last_run = time.time()

        if result.errors:
            logger.warning(
                "Pin sync: %d files failed to parse, first: %s",
                len(result.errors),
                result.errors[0],
            )
        if result.processed_files:
            logger.info(
                "Pin sync: %d files parsed, %d pins",
                result.processed_files,
                result.pinned_items,
            )
        return result

    def _loop(self) -> None:
        # Wait first so a stop right after start never scans
        while not self._wake.wait(timeout=self._interval):
            try:
                self.run_once()
            except Exception:
                logger.exception("Pin sync pass failed")
