# =======================================================================================
# nsems/services/credential_store.py - Authoritative Holder Records
# =======================================================================================
import secrets
import threading
from typing import Optional, List, Dict, Any
from sqlalchemy import text

from ..database import DatabaseManager
from ..models.enums import HolderStatus
from ..models.schemas import HolderExport, HolderInfo
from .token_service import now_ms


def generate_secret() -> str:
    """32 random bytes, hex encoded."""
    return secrets.token_hex(32)


class CredentialStore:
    """
    Holder identifiers and secrets on the authority.

    Verification only reads. Enrollment and status changes take a lock so
    they never interleave with each other.
    """

    _COLUMNS = "identifier, secret, status, name, program, department, year, image_link"

    def __init__(self, db: DatabaseManager):
        self.db = db
        self._write_lock = threading.Lock()

    @staticmethod
    def _row_to_info(row) -> HolderInfo:
        return HolderInfo(
            identifier=row["identifier"],
            name=row["name"],
            status=row["status"],
            program=row["program"],
            department=row["department"],
            year=row["year"],
            imageLink=row["image_link"],
        )

    def get_record(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Full row, secret included. Stays inside the authority."""
        row = self.db.fetch_one(
            f"SELECT {self._COLUMNS} FROM holders WHERE identifier = :ident",
            {"ident": identifier},
        )
        return dict(row) if row else None

    def get_holder(self, identifier: str) -> Optional[HolderInfo]:
        row = self.db.fetch_one(
            f"SELECT {self._COLUMNS} FROM holders WHERE identifier = :ident",
            {"ident": identifier},
        )
        return self._row_to_info(row) if row else None

    def export_active(self) -> List[HolderExport]:
        """
        Bulk export for scan point caches.

        The secret is part of the export on purpose: offline verification
        needs it. Any device holding this export can mint tokens for every
        exported holder.
        """
        rows = self.db.fetch_all(
            f"SELECT {self._COLUMNS} FROM holders WHERE status = :st ORDER BY identifier",
            {"st": HolderStatus.ACTIVE.value},
        )
        return [
            HolderExport(
                identifier=r["identifier"],
                secret=r["secret"],
                status=r["status"],
                name=r["name"],
                program=r["program"],
                department=r["department"],
                year=r["year"],
                imageLink=r["image_link"],
            )
            for r in rows
        ]

    def count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS n FROM holders")
        return int(row["n"] or 0)

    # ---------------- administrative writes ----------------

    def enroll(
        self,
        identifier: str,
        secret: Optional[str] = None,
        name: Optional[str] = None,
        program: Optional[str] = None,
        department: Optional[str] = None,
        year: Optional[int] = None,
        image_link: Optional[str] = None,
        status: str = HolderStatus.ACTIVE.value,
    ) -> str:
        """Create a holder; returns the secret so the holder device can be provisioned."""
        if not identifier or "|" in identifier:
            raise ValueError("identifier must be non-empty and must not contain '|'")
        HolderStatus(status)
        secret = secret or generate_secret()
        with self._write_lock, self.db.get_connection() as conn:
            conn.execute(
                text("""
                    INSERT INTO holders (identifier, secret, status, name, program,
                                         department, year, image_link, updated_at_ms)
                    VALUES (:ident, :secret, :status, :name, :program,
                            :department, :year, :image, :now)
                """),
                {
                    "ident": identifier, "secret": secret, "status": status,
                    "name": name, "program": program, "department": department,
                    "year": year, "image": image_link, "now": now_ms(),
                },
            )
        return secret

    def set_status(self, identifier: str, status: str) -> bool:
        """Change a holder's status. Returns False when the holder does not exist."""
        HolderStatus(status)
        with self._write_lock, self.db.get_connection() as conn:
            result = conn.execute(
                text("UPDATE holders SET status = :status, updated_at_ms = :now WHERE identifier = :ident"),
                {"status": status, "now": now_ms(), "ident": identifier},
            )
            return result.rowcount > 0

    def rotate_secret(self, identifier: str) -> Optional[str]:
        """Issue a new secret; scan point caches pick it up on their next refresh."""
        secret = generate_secret()
        with self._write_lock, self.db.get_connection() as conn:
            result = conn.execute(
                text("UPDATE holders SET secret = :secret, updated_at_ms = :now WHERE identifier = :ident"),
                {"secret": secret, "now": now_ms(), "ident": identifier},
            )
            if result.rowcount == 0:
                return None
        return secret
