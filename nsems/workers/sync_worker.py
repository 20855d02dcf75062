# =======================================================================================
# nsems/workers/sync_worker.py - Background Sync Worker
# =======================================================================================
import logging
import threading
from typing import Optional

from ..services.sync_service import SyncService

logger = logging.getLogger(__name__)


class SyncWorker:
    """Probes the authority and flushes the sync queue on a fixed interval."""

    def __init__(self, sync_service: SyncService, interval_seconds: float):
        self.sync_service = sync_service
        self.interval_seconds = interval_seconds
        self.running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="sync-worker", daemon=True)
        self._thread.start()
        logger.info("[sync] Worker started (every %ss)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self.running = False
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def run_once(self) -> None:
        """One tick: probe, then flush whatever is due."""
        connectivity = self.sync_service.connectivity
        # an offline -> online transition triggers its own flush
        was_online = connectivity.is_online
        if connectivity.probe() and was_online:
            self.sync_service.flush()

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception("[sync] Worker tick failed")
