"""Timer loop driving periodic sync passes."""

import threading
import time
from typing import Optional

from db.healthcheck import check_tables_exist
from db.session import Database
from db.sync_state import SyncCursorStore
from log import get_logger
from pipeline.indexer import ChainIndexer

logger = get_logger(__name__)


class SyncScheduler:
    """Runs ``ChainIndexer.run_sync_pass`` every ``interval_seconds``.

    A slow pass delays the next tick rather than stacking passes.
    """

    def __init__(
        self,
        indexer: ChainIndexer,
        database: Database,
        cursor_store: SyncCursorStore,
        interval_seconds: float,
        resync_on_empty_registry: bool = True,
    ):
        self.indexer = indexer
        self.database = database
        self.cursor_store = cursor_store
        self.interval_seconds = interval_seconds
        self.resync_on_empty_registry = resync_on_empty_registry
        self._stop = threading.Event()

    def prepare(self) -> None:
        """Boot checks; the loop only starts once storage is confirmed.

        Raises:
            RuntimeError: If the ledger tables do not exist
        """
        check_tables_exist(self.database)
        if self.resync_on_empty_registry:
            self.cursor_store.reset_if_registry_empty()

    def stop(self) -> None:
        logger.info("Shutdown signal received, stopping ..")
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run(self, max_passes: Optional[int] = None) -> int:
        """Run the loop until stopped.

        Args:
            max_passes: Stop after this many passes (None = run forever)

        Returns:
            Number of passes run
        """
        self.prepare()
        logger.info(f"Starting sync loop (interval={self.interval_seconds}s)")

        passes = 0
        while not self._stop.is_set():
            started = time.monotonic()
            try:
                self.indexer.run_sync_pass()
            except Exception as e:
                logger.error(f"Error in sync loop: {e}", exc_info=True)
            passes += 1

            if max_passes is not None and passes >= max_passes:
                break

            elapsed = time.monotonic() - started
            self._stop.wait(max(0.0, self.interval_seconds - elapsed))

        logger.info("Indexer stopped")
        return passes
