# =======================================================================================
# nsems/services/local_cache.py - Scan Point Verification Cache
# =======================================================================================
import logging
import threading
from typing import Optional, Iterable, List, Union
from sqlalchemy import text

from ..database import DatabaseManager
from ..models.schemas import CacheEntry, HolderExport, HolderInfo
from .token_service import now_ms

logger = logging.getLogger(__name__)

_INSERT_SQL = """
    INSERT INTO cache_entries (identifier, secret, status, name, program,
                               department, year, image_link, cached_at_ms)
    VALUES (:ident, :secret, :status, :name, :program,
            :department, :year, :image, :cached_at)
"""


def _entry_params(entry: Union[CacheEntry, HolderExport], cached_at: int) -> dict:
    return {
        "ident": entry.identifier,
        "secret": entry.secret,
        "status": entry.status,
        "name": entry.name,
        "program": entry.program,
        "department": entry.department,
        "year": entry.year,
        "image": entry.imageLink,
        "cached_at": cached_at,
    }


class LocalVerificationCache:
    """
    Durable per-device copy of the holder records used when the authority
    cannot be reached.

    ``refresh_all`` swaps the whole table inside one transaction while holding
    the cache lock, so ``get`` sees either the old data set or the new one.
    """

    def __init__(self, db: DatabaseManager, clock=now_ms):
        self.db = db
        self.clock = clock
        self._lock = threading.RLock()

    @staticmethod
    def _row_to_entry(row) -> CacheEntry:
        return CacheEntry(
            identifier=row["identifier"],
            secret=row["secret"],
            status=row["status"],
            name=row["name"],
            program=row["program"],
            department=row["department"],
            year=row["year"],
            imageLink=row["image_link"],
            cachedAt=row["cached_at_ms"],
        )

    def get(self, identifier: str) -> Optional[CacheEntry]:
        with self._lock:
            row = self.db.fetch_one(
                "SELECT * FROM cache_entries WHERE identifier = :ident",
                {"ident": identifier},
            )
        return self._row_to_entry(row) if row else None

    def refresh_all(self, entries: Iterable[HolderExport]) -> int:
        """Replace the full cache contents with ``entries``."""
        entries = list(entries)
        cached_at = self.clock()
        with self._lock, self.db.get_connection() as conn:
            conn.execute(text("DELETE FROM cache_entries"))
            for entry in entries:
                conn.execute(text(_INSERT_SQL), _entry_params(entry, cached_at))
            conn.execute(text("DELETE FROM cache_meta WHERE meta_key = 'refreshed_at_ms'"))
            conn.execute(
                text("INSERT INTO cache_meta (meta_key, meta_value) VALUES ('refreshed_at_ms', :v)"),
                {"v": str(cached_at)},
            )
        logger.info("[cache] Refreshed %d holder records", len(entries))
        return len(entries)

    def put(self, entry: Union[CacheEntry, HolderExport, HolderInfo]) -> CacheEntry:
        """
        Upsert one record, newest fields winning. A record without a secret
        keeps the secret already cached for that identifier.
        """
        with self._lock, self.db.get_connection() as conn:
            existing = conn.execute(
                text("SELECT * FROM cache_entries WHERE identifier = :ident"),
                {"ident": entry.identifier},
            ).mappings().first()

            secret = getattr(entry, "secret", None)
            if secret is None and existing is not None:
                secret = existing["secret"]

            merged = CacheEntry(
                identifier=entry.identifier,
                secret=secret,
                status=entry.status,
                name=entry.name,
                program=entry.program,
                department=entry.department,
                year=entry.year,
                imageLink=entry.imageLink,
                cachedAt=self.clock(),
            )
            if existing is not None:
                conn.execute(
                    text("DELETE FROM cache_entries WHERE identifier = :ident"),
                    {"ident": entry.identifier},
                )
            conn.execute(text(_INSERT_SQL), _entry_params(merged, merged.cachedAt))
        return merged

    def all(self) -> List[CacheEntry]:
        with self._lock:
            rows = self.db.fetch_all("SELECT * FROM cache_entries ORDER BY identifier")
        return [self._row_to_entry(r) for r in rows]

    def count(self) -> int:
        with self._lock:
            row = self.db.fetch_one("SELECT COUNT(*) AS n FROM cache_entries")
        return int(row["n"] or 0)

    def refreshed_at(self) -> Optional[int]:
        with self._lock:
            row = self.db.fetch_one(
                "SELECT meta_value FROM cache_meta WHERE meta_key = 'refreshed_at_ms'"
            )
        return int(row["meta_value"]) if row else None
