# =======================================================================================
# nsems/services/sync_service.py - Outcome Synchronization with the Authority
# =======================================================================================
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from ..config import Config
from ..models.schemas import SyncStatusResponse
from ..utils.exceptions import AuthorityUnavailable, SyncTransportFailure
from .authority_client import AuthorityClient
from .connectivity import ConnectivityMonitor
from .event_log import EventLog
from .local_cache import LocalVerificationCache
from .token_service import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlushReport:
    attempted: int = 0
    synced: int = 0
    failed: int = 0
    dormant: int = 0
    remaining: int = 0
    skipped: bool = False


class SyncService:
    """Pushes queued outcomes to the authority and refreshes the cache from it."""

    def __init__(
        self,
        cfg: Config,
        events: EventLog,
        client: AuthorityClient,
        connectivity: ConnectivityMonitor,
        cache: Optional[LocalVerificationCache] = None,
        clock=now_ms,
    ):
        self.max_attempts = cfg.MAX_AUTO_SYNC_ATTEMPTS
        self.backoff_base_ms = cfg.SYNC_BACKOFF_BASE_SECONDS * 1000
        self.refresh_on_reconnect = cfg.CACHE_REFRESH_ON_RECONNECT
        self.events = events
        self.client = client
        self.connectivity = connectivity
        self.cache = cache
        self.clock = clock
        self._flush_lock = threading.Lock()
        self.last_flush_at_ms: Optional[int] = None
        self.last_flush_synced = 0

    def backoff_ms(self, attempts: int) -> int:
        """Delay before the next automatic attempt after ``attempts`` failures."""
        return self.backoff_base_ms * (2 ** max(0, attempts - 1))

    def flush(self, manual: bool = False) -> FlushReport:
        """
        Push queued outcomes, one entry per request.

        Automatic flushes skip entries still backing off and entries that used
        up their attempts. A manual flush pushes everything, dormant included.
        """
        if not self._flush_lock.acquire(blocking=False):
            return FlushReport(skipped=True)
        try:
            now = self.clock()
            if manual:
                entries = self.events.queued_entries()
            else:
                entries = self.events.due_entries(now, self.max_attempts)

            synced = failed = 0
            for entry in entries:
                try:
                    self.client.push_outcomes([entry.outcome])
                except SyncTransportFailure as e:
                    failed += 1
                    attempts = self.events.mark_failed(entry, now + self.backoff_ms(entry.attempts + 1), e.reason)
                    if attempts >= self.max_attempts:
                        logger.warning("[sync] Entry %d is dormant after %d attempts", entry.event_id, attempts)
                    else:
                        logger.info("[sync] Push failed for entry %d (attempt %d): %s",
                                    entry.event_id, attempts, e.reason)
                    continue
                self.events.acknowledge(entry)
                synced += 1

            if synced:
                self.connectivity.mark_online()
            elif failed:
                self.connectivity.mark_offline()

            self.last_flush_at_ms = now
            self.last_flush_synced = synced
            report = FlushReport(
                attempted=len(entries),
                synced=synced,
                failed=failed,
                dormant=self.events.dormant_count(self.max_attempts),
                remaining=self.events.pending_count(self.max_attempts),
            )
            if entries:
                logger.info("[sync] Flush: %d attempted, %d synced, %d failed", report.attempted, synced, failed)
            return report
        finally:
            self._flush_lock.release()

    def refresh_cache(self) -> int:
        """Pull the holder export and swap it into the local cache."""
        if self.cache is None:
            return 0
        entries = self.client.export_holders()
        self.connectivity.mark_online()
        return self.cache.refresh_all(entries)

    def handle_reconnect(self) -> None:
        """Offline -> online: refresh the cache if enabled, then flush."""
        if self.refresh_on_reconnect and self.cache is not None:
            try:
                self.refresh_cache()
            except AuthorityUnavailable as e:
                logger.info("[sync] Cache refresh on reconnect failed: %s", e.reason)
        self.flush()

    def status(self) -> SyncStatusResponse:
        return SyncStatusResponse(
            pending=self.events.pending_count(self.max_attempts),
            dormant=self.events.dormant_count(self.max_attempts),
            online=self.connectivity.is_online,
            lastFlushAtMs=self.last_flush_at_ms,
            lastFlushSynced=self.last_flush_synced,
            cachedHolders=self.cache.count() if self.cache is not None else 0,
            cacheRefreshedAtMs=self.cache.refreshed_at() if self.cache is not None else None,
        )
