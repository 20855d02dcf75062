# =======================================================================================
# nsems/services/event_log.py - Scan Point Event Log and Sync Queue Storage
# =======================================================================================
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy import text

from ..database import DatabaseManager
from ..models.enums import VerificationSource
from ..models.schemas import VerificationOutcome
from .token_service import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordResult:
    """What happened when an outcome was written locally."""
    ok: bool
    event_id: Optional[int] = None
    queued: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class QueuedEntry:
    queue_id: int
    event_id: int
    attempts: int
    next_attempt_at_ms: int
    outcome: VerificationOutcome


class EventLog:
    """
    Append-only record of every verification on this scan point, plus the
    queue of outcomes the authority has not acknowledged yet.

    Outcomes answered by the authority are already in the canonical log and
    are stored as synced. Outcomes classified locally are queued.
    """

    def __init__(self, db: DatabaseManager, clock=now_ms):
        self.db = db
        self.clock = clock
        # single writer per device
        self._lock = threading.RLock()

    def record(self, outcome: VerificationOutcome, superseded: bool = False) -> RecordResult:
        needs_sync = outcome.verifiedAtLocalOrRemote == VerificationSource.LOCAL.value
        try:
            with self._lock, self.db.get_connection() as conn:
                result = conn.execute(
                    text("""
                        INSERT INTO local_events (identifier, time_window, signature_presented, result,
                                                  reason, source, scanner_id, timestamp_ms, latency_ms,
                                                  superseded, is_synced)
                        VALUES (:ident, :window, :sig, :result, :reason, :source, :scanner,
                                :ts, :latency, :superseded, :synced)
                    """),
                    {
                        "ident": outcome.identifier,
                        "window": outcome.window,
                        "sig": outcome.signaturePresented,
                        "result": outcome.result,
                        "reason": outcome.reason,
                        "source": outcome.verifiedAtLocalOrRemote,
                        "scanner": outcome.scannerId,
                        "ts": outcome.timestamp,
                        "latency": outcome.latencyMs,
                        "superseded": superseded,
                        "synced": not needs_sync,
                    },
                )
                event_id = result.lastrowid
                if needs_sync:
                    conn.execute(
                        text("""
                            INSERT INTO sync_queue (event_id, attempts, next_attempt_at_ms, created_at_ms)
                            VALUES (:eid, 0, 0, :now)
                        """),
                        {"eid": event_id, "now": self.clock()},
                    )
        except Exception as e:
            logger.error("[log] Failed to record outcome for %s: %s", outcome.identifier, e)
            return RecordResult(ok=False, error=str(e))
        return RecordResult(ok=True, event_id=event_id, queued=needs_sync)

    # ----------------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------------
    @staticmethod
    def _row_to_outcome(row) -> VerificationOutcome:
        return VerificationOutcome(
            identifier=row["identifier"],
            window=row["time_window"],
            signaturePresented=row["signature_presented"],
            result=row["result"],
            verifiedAtLocalOrRemote=row["source"],
            timestamp=row["timestamp_ms"],
            latencyMs=row["latency_ms"],
            reason=row["reason"],
            scannerId=row["scanner_id"],
        )

    def recent(self, limit: int = 100) -> List[VerificationOutcome]:
        rows = self.db.fetch_all(
            "SELECT * FROM local_events ORDER BY id DESC LIMIT :limit", {"limit": limit}
        )
        return [self._row_to_outcome(r) for r in rows]

    def count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS n FROM local_events")
        return int(row["n"] or 0)

    def _queued(self, where: str, params: dict) -> List[QueuedEntry]:
        rows = self.db.fetch_all(
            f"""
            SELECT q.id AS queue_id, q.attempts, q.next_attempt_at_ms, e.*
            FROM sync_queue q
            JOIN local_events e ON e.id = q.event_id
            {where}
            ORDER BY q.id
            """,
            params,
        )
        return [
            QueuedEntry(
                queue_id=r["queue_id"],
                event_id=r["id"],
                attempts=r["attempts"],
                next_attempt_at_ms=r["next_attempt_at_ms"],
                outcome=self._row_to_outcome(r),
            )
            for r in rows
        ]

    def due_entries(self, now: int, max_attempts: int) -> List[QueuedEntry]:
        """Entries the automatic flush may push now."""
        return self._queued(
            "WHERE q.attempts < :max AND q.next_attempt_at_ms <= :now",
            {"max": max_attempts, "now": now},
        )

    def queued_entries(self) -> List[QueuedEntry]:
        """Every queued entry, dormant ones included."""
        return self._queued("", {})

    def pending_count(self, max_attempts: int) -> int:
        row = self.db.fetch_one(
            "SELECT COUNT(*) AS n FROM sync_queue WHERE attempts < :max", {"max": max_attempts}
        )
        return int(row["n"] or 0)

    def dormant_count(self, max_attempts: int) -> int:
        row = self.db.fetch_one(
            "SELECT COUNT(*) AS n FROM sync_queue WHERE attempts >= :max", {"max": max_attempts}
        )
        return int(row["n"] or 0)

    # ----------------------------------------------------------------------
    # Queue updates
    # ----------------------------------------------------------------------
    def acknowledge(self, entry: QueuedEntry) -> None:
        with self._lock, self.db.get_connection() as conn:
            conn.execute(text("DELETE FROM sync_queue WHERE id = :qid"), {"qid": entry.queue_id})
            conn.execute(
                text("UPDATE local_events SET is_synced = 1 WHERE id = :eid"),
                {"eid": entry.event_id},
            )

    def mark_failed(self, entry: QueuedEntry, next_attempt_at_ms: int, error: str) -> int:
        attempts = entry.attempts + 1
        with self._lock, self.db.get_connection() as conn:
            conn.execute(
                text("""
                    UPDATE sync_queue
                    SET attempts = :attempts, next_attempt_at_ms = :next, last_error = :err
                    WHERE id = :qid
                """),
                {"attempts": attempts, "next": next_attempt_at_ms, "err": error[:255], "qid": entry.queue_id},
            )
        return attempts
