# =======================================================================================
# nsems/services/verifier.py - Dual-Path Token Verification
# =======================================================================================
"""
Classifies a scanned payload as valid, invalid or expired.

Steps: parse, window check, lookup (authority or local cache), signature
check, status check, outcome. Every call ends in exactly one outcome, which is
written to the event log and pushed to subscribers; nothing raises out of
``verify``.
"""
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..config import Config
from ..models.enums import Reason, VerificationResult, VerificationSource, VerifierState
from ..models.schemas import HolderInfo, ScanResponse, VerificationOutcome
from ..utils.exceptions import AuthorityUnavailable, LookupUnavailable, TokenCoreError
from ..utils.validators import ParsedToken, TokenValidator
from .authority_client import AuthorityClient
from .connectivity import ConnectivityMonitor
from .event_log import EventLog, RecordResult
from .local_cache import LocalVerificationCache
from .token_service import TokenService, now_ms

logger = logging.getLogger(__name__)


@dataclass
class _Classification:
    result: str
    reason: str
    source: str = VerificationSource.LOCAL.value
    holder: Optional[HolderInfo] = None


@dataclass(frozen=True)
class VerificationReport:
    """An outcome plus what the scanning UI needs to show it."""
    outcome: VerificationOutcome
    holder: Optional[HolderInfo]
    superseded: bool
    record: RecordResult
    states: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def valid(self) -> bool:
        return self.outcome.result == VerificationResult.VALID.value

    def to_response(self) -> ScanResponse:
        return ScanResponse(
            result=self.outcome.result,
            valid=self.valid,
            reason=self.outcome.reason or "",
            source=self.outcome.verifiedAtLocalOrRemote,
            holder=self.holder,
            latencyMs=self.outcome.latencyMs,
            superseded=self.superseded,
            recorded=self.record.ok,
        )


class Verifier:
    """Runs the verification pipeline on a scan point."""

    def __init__(
        self,
        cfg: Config,
        tokens: TokenService,
        cache: LocalVerificationCache,
        events: EventLog,
        client: Optional[AuthorityClient] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        clock=now_ms,
    ):
        self.tokens = tokens
        self.cache = cache
        self.events = events
        self.client = client
        self.connectivity = connectivity or ConnectivityMonitor(client, online=client is not None)
        self.clock = clock
        self.scanner_id = cfg.SCANNER_ID
        self.lookup_order = cfg.LOOKUP_ORDER
        self.debounce_ms = cfg.SCAN_DEBOUNCE_MS

        self._subscribers: List[Callable[[VerificationReport], None]] = []
        self._seq = itertools.count(1)
        self._latest_scan: Dict[str, Tuple[int, int]] = {}
        self._scan_lock = threading.Lock()

    # ----------------------------------------------------------------------
    # Observers
    # ----------------------------------------------------------------------
    def subscribe(self, callback: Callable[[VerificationReport], None]) -> Callable[[], None]:
        """Receive every report after it is recorded; returns an unsubscribe callable."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, report: VerificationReport) -> None:
        for callback in list(self._subscribers):
            try:
                callback(report)
            except Exception:
                logger.exception("[verify] Subscriber failed")

    # ----------------------------------------------------------------------
    # Debounce
    # ----------------------------------------------------------------------
    def _begin_scan(self, payload: str, started: int) -> int:
        with self._scan_lock:
            seq = next(self._seq)
            self._latest_scan[payload] = (seq, started)
            # drop scans too old to supersede anything
            cutoff = started - self.debounce_ms
            for key in [k for k, (_, ts) in self._latest_scan.items() if ts < cutoff]:
                del self._latest_scan[key]
            return seq

    def _is_superseded(self, payload: str, seq: int, started: int) -> bool:
        with self._scan_lock:
            latest = self._latest_scan.get(payload)
        if latest is None:
            return False
        latest_seq, latest_started = latest
        return latest_seq != seq and latest_started - started <= self.debounce_ms

    # ----------------------------------------------------------------------
    # Lookups
    # ----------------------------------------------------------------------
    def _authority_lookup(self, token: ParsedToken, scanner_id: str, states: List[str]) -> _Classification:
        states.append(VerifierState.AUTHORITY_LOOKUP.value)
        response = self.client.verify(token.serialize(), scanner_id)
        self.connectivity.mark_online()
        # the authority ran both checks on its side
        states.append(VerifierState.SIGNATURE_CHECK.value)
        states.append(VerifierState.STATUS_CHECK.value)

        if response.holder is not None:
            try:
                self.cache.put(response.holder)
            except Exception as e:
                logger.warning("[verify] Could not warm cache for %s: %s", token.identifier, e)

        result = response.result or (
            VerificationResult.VALID.value if response.valid else VerificationResult.INVALID.value
        )
        return _Classification(
            result=result,
            reason=response.reason or (Reason.OK if response.valid else Reason.SIGNATURE_MISMATCH),
            source=VerificationSource.REMOTE.value,
            holder=response.holder,
        )

    def _cache_lookup(self, token: ParsedToken, states: List[str]) -> _Classification:
        states.append(VerifierState.CACHE_LOOKUP.value)
        entry = self.cache.get(token.identifier)
        if entry is None or not entry.secret:
            raise LookupUnavailable()

        holder = entry.to_holder_info()
        states.append(VerifierState.SIGNATURE_CHECK.value)
        states.append(VerifierState.STATUS_CHECK.value)
        try:
            self.tokens.check_credential(token, entry.secret, entry.status)
        except TokenCoreError as e:
            return _Classification(e.result, e.reason, holder=holder)
        return _Classification(VerificationResult.VALID.value, Reason.OK, holder=holder)

    def _lookup(self, token: ParsedToken, scanner_id: str, states: List[str]) -> _Classification:
        can_ask_authority = self.client is not None and self.connectivity.is_online

        if self.lookup_order == "cache_first":
            try:
                return self._cache_lookup(token, states)
            except LookupUnavailable:
                if not can_ask_authority:
                    raise
            try:
                return self._authority_lookup(token, scanner_id, states)
            except AuthorityUnavailable:
                self.connectivity.mark_offline()
                raise LookupUnavailable()

        if can_ask_authority:
            try:
                return self._authority_lookup(token, scanner_id, states)
            except AuthorityUnavailable as e:
                logger.info("[verify] Authority unavailable (%s); using local cache", e.reason)
                self.connectivity.mark_offline()
        return self._cache_lookup(token, states)

    # ----------------------------------------------------------------------
    # Pipeline
    # ----------------------------------------------------------------------
    def _classify(self, raw: str, started: int, scanner_id: str,
                  states: List[str]) -> Tuple[_Classification, str, int, str]:
        identifier, window, sig_hex = "", 0, ""
        try:
            states.append(VerifierState.PARSING.value)
            parsed = TokenValidator.parse(raw)
            if not parsed.ok:
                classification = _Classification(VerificationResult.INVALID.value, parsed.error.reason)
                return classification, parsed.identifier, parsed.window, ""

            token = parsed.value
            identifier, window, sig_hex = token.identifier, token.window, token.signature_hex

            states.append(VerifierState.WINDOW_CHECK.value)
            self.tokens.check_window(token, started)

            return self._lookup(token, scanner_id, states), identifier, window, sig_hex
        except LookupUnavailable as e:
            logger.warning("[verify] No verification data for %s; cache may be stale", identifier)
            return _Classification(VerificationResult.INVALID.value, e.reason), identifier, window, sig_hex
        except TokenCoreError as e:
            return _Classification(e.result, e.reason), identifier, window, sig_hex
        except Exception as e:
            logger.exception("[verify] Unexpected failure verifying %s", identifier or "<unparsed>")
            reason = f"{Reason.INTERNAL_ERROR}: {e.__class__.__name__}"
            return _Classification(VerificationResult.INVALID.value, reason), identifier, window, sig_hex

    def verify(self, raw: str, scanner_id: Optional[str] = None) -> VerificationReport:
        """Classify one scanned payload. Always returns a report."""
        scanner_id = scanner_id or self.scanner_id
        started = self.clock()
        payload = raw.strip() if isinstance(raw, str) else ""
        seq = self._begin_scan(payload, started)
        states: List[str] = [VerifierState.IDLE.value]

        classification, identifier, window, sig_hex = self._classify(raw, started, scanner_id, states)
        states.append(VerifierState.OUTCOME.value)

        finished = self.clock()
        outcome = VerificationOutcome(
            identifier=identifier,
            window=window,
            signaturePresented=sig_hex,
            result=classification.result,
            verifiedAtLocalOrRemote=classification.source,
            timestamp=finished,
            latencyMs=max(0, finished - started),
            reason=classification.reason,
            scannerId=scanner_id,
        )
        superseded = self._is_superseded(payload, seq, started)
        record = self.events.record(outcome, superseded=superseded)

        report = VerificationReport(
            outcome=outcome,
            holder=classification.holder,
            superseded=superseded,
            record=record,
            states=tuple(states),
        )
        logger.debug("[verify] %s -> %s (%s, %s)", identifier or "<unparsed>",
                     outcome.result, outcome.reason, outcome.verifiedAtLocalOrRemote)
        self._publish(report)
        return report
