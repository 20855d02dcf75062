# =======================================================================================
# nsems/services/authority_service.py - Authority Verification and Canonical Log
# =======================================================================================
import logging
import threading
from typing import Iterable, List, Optional, Tuple
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from ..database import DatabaseManager
from ..models.enums import Reason, VerificationResult, VerificationSource
from ..models.schemas import (
    CanonicalLogItem,
    HolderExport,
    VerificationOutcome,
    VerifyRequest,
    VerifyResponse,
)
from ..utils.exceptions import HolderNotFound, LookupUnavailable, TokenCoreError
from ..utils.validators import TokenValidator
from .credential_store import CredentialStore
from .token_service import TokenService, now_ms

logger = logging.getLogger(__name__)

_INSERT_EVENT = """
    INSERT INTO verification_events (identifier, time_window, signature_presented, result,
                                     reason, source, scanner_id, timestamp_ms, latency_ms,
                                     received_at_ms)
    VALUES (:ident, :window, :sig, :result, :reason, :source, :scanner,
            :ts, :latency, :received)
"""


class AuthorityService:
    """Server-side verification, canonical event log and cache export."""

    def __init__(self, store: CredentialStore, tokens: TokenService, db: DatabaseManager, clock=now_ms):
        self.store = store
        self.tokens = tokens
        self.db = db
        self.clock = clock
        self._log_lock = threading.Lock()

    # ----------------------------------------------------------------------
    # Verification
    # ----------------------------------------------------------------------
    def verify(self, request: VerifyRequest) -> VerifyResponse:
        """
        Classify a payload against the authoritative secret and log the outcome.

        Token problems come back as ``valid=False`` with a reason. Only a
        holder whose secret is missing yields ``success=False``; that is not
        logged because the scan point will classify it from its cache.
        """
        started = self.clock()
        identifier, window, sig_hex = "", 0, ""
        holder = None
        expires_at = None

        try:
            parsed = TokenValidator.parse(request.qrData)
            if not parsed.ok:
                identifier, window = parsed.identifier, parsed.window
                raise parsed.error

            token = parsed.value
            identifier, window, sig_hex = token.identifier, token.window, token.signature_hex
            expires_at = self.tokens.expires_at_ms(window)
            self.tokens.check_window(token, started)

            record = self.store.get_record(identifier)
            if record is None:
                raise HolderNotFound()
            holder = self.store.get_holder(identifier)
            self.tokens.check_credential(token, record["secret"], record["status"])
            result, reason = VerificationResult.VALID.value, Reason.OK
        except LookupUnavailable as e:
            logger.error("[authority] Secret missing for holder %s", identifier)
            return VerifyResponse(success=False, valid=False, reason=e.reason, timestamp=started)
        except TokenCoreError as e:
            result, reason = e.result, e.reason
        except Exception:
            logger.exception("[authority] Unexpected verification failure")
            result, reason = VerificationResult.INVALID.value, Reason.INTERNAL_ERROR

        finished = self.clock()
        outcome = VerificationOutcome(
            identifier=identifier,
            window=window,
            signaturePresented=sig_hex,
            result=result,
            verifiedAtLocalOrRemote=VerificationSource.REMOTE.value,
            timestamp=finished,
            latencyMs=max(0, finished - started),
            reason=reason,
            scannerId=request.scannerId,
        )
        self.record_outcomes([outcome])

        return VerifyResponse(
            success=True,
            valid=result == VerificationResult.VALID.value,
            result=result,
            reason=reason,
            holder=holder,
            expiresAtMs=expires_at,
            timestamp=finished,
        )

    # ----------------------------------------------------------------------
    # Canonical log
    # ----------------------------------------------------------------------
    def _insert_if_absent(self, outcome: VerificationOutcome) -> bool:
        ident, window, ts = outcome.idempotency_key
        params = {
            "ident": ident,
            "window": window,
            "sig": outcome.signaturePresented,
            "result": outcome.result,
            "reason": outcome.reason,
            "source": outcome.verifiedAtLocalOrRemote,
            "scanner": outcome.scannerId,
            "ts": ts,
            "latency": outcome.latencyMs,
            "received": self.clock(),
        }
        try:
            with self.db.get_connection() as conn:
                existing = conn.execute(
                    text("""
                        SELECT id FROM verification_events
                        WHERE identifier = :ident AND time_window = :window AND timestamp_ms = :ts
                    """),
                    params,
                ).first()
                if existing:
                    return False
                conn.execute(text(_INSERT_EVENT), params)
                return True
        except IntegrityError:
            # another writer stored the same key first
            return False

    def record_outcomes(self, outcomes: Iterable[VerificationOutcome]) -> int:
        """Append outcomes; re-delivered ones are ignored. Returns rows added."""
        added = 0
        with self._log_lock:
            for outcome in outcomes:
                if self._insert_if_absent(outcome):
                    added += 1
        return added

    def log_count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS n FROM verification_events")
        return int(row["n"] or 0)

    def recent_logs(self, limit: int = 100, identifier: Optional[str] = None) -> Tuple[int, List[CanonicalLogItem]]:
        where = "WHERE identifier = :ident" if identifier else ""
        params = {"limit": limit, "ident": identifier}
        rows = self.db.fetch_all(
            f"""
            SELECT id, identifier, time_window, result, reason, source, scanner_id,
                   timestamp_ms, latency_ms
            FROM verification_events
            {where}
            ORDER BY timestamp_ms DESC, id DESC
            LIMIT :limit
            """,
            params,
        )
        total = self.db.fetch_one(f"SELECT COUNT(*) AS n FROM verification_events {where}", params)
        items = [
            CanonicalLogItem(
                id=r["id"],
                identifier=r["identifier"],
                window=r["time_window"],
                result=r["result"],
                reason=r["reason"],
                source=r["source"],
                scannerId=r["scanner_id"],
                timestamp=r["timestamp_ms"],
                latencyMs=r["latency_ms"],
            )
            for r in rows
        ]
        return int(total["n"] or 0), items

    # ----------------------------------------------------------------------
    # Cache export
    # ----------------------------------------------------------------------
    def export_for_cache(self) -> List[HolderExport]:
        return self.store.export_active()
