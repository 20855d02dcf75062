# =======================================================================================
# nsems/services/authority_client.py - HTTP Client for the Authority
# =======================================================================================
"""HTTP client a scan point uses to reach the authority.

Every call carries the bounded verify timeout. Transport errors, timeouts,
unexpected status codes and bodies that do not validate all surface as
``AuthorityUnavailable`` so callers have a single failure to fall back on.
Sync pushes raise ``SyncTransportFailure`` instead; the queue retries those.
"""
import logging
from typing import Iterable, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from ..config import Config
from ..models.schemas import (
    HolderExport,
    SyncPushRequest,
    SyncPushResponse,
    VerificationOutcome,
    VerifyRequest,
    VerifyResponse,
)
from ..utils.exceptions import AuthorityUnavailable, SyncTransportFailure

logger = logging.getLogger(__name__)

_EXPORT_ADAPTER = TypeAdapter(List[HolderExport])


class AuthorityClient:
    """Client for the authority API.

    Example:
        with AuthorityClient(cfg) as client:
            response = client.verify("NSE-202601|29000000|ab12...", "gate-1")
    """

    VALIDATE_PATH = "/api/scanner/validate"
    EXPORT_PATH = "/api/holders/sync-all"
    SYNC_PATH = "/api/scanner/sync-logs"
    HEALTH_PATH = "/api/health"

    def __init__(self, cfg: Config, http_client: Optional[httpx.Client] = None) -> None:
        """Initialize client.

        Args:
            cfg: Settings; ``AUTHORITY_URL`` and ``VERIFY_TIMEOUT_MS`` are used.
            http_client: Pre-built client (tests pass one bound to the app).
        """
        self.timeout = cfg.verify_timeout_seconds
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            base_url=cfg.AUTHORITY_URL,
            timeout=self.timeout,
        )

    def __enter__(self) -> "AuthorityClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, timeout=self.timeout, **kwargs)
        except httpx.HTTPError as e:
            logger.info("[authority] %s %s failed: %s", method, path, e)
            raise AuthorityUnavailable(f"authority unreachable: {e.__class__.__name__}") from e

    def verify(self, qr_data: str, scanner_id: str) -> VerifyResponse:
        """Ask the authority to classify a payload."""
        try:
            body = VerifyRequest(qrData=qr_data, scannerId=scanner_id).model_dump()
        except ValidationError as e:
            # the authority would refuse it too; let the cache answer
            raise AuthorityUnavailable("payload not accepted by authority") from e
        response = self._request("POST", self.VALIDATE_PATH, json=body)
        if response.status_code >= 500:
            raise AuthorityUnavailable(f"authority error {response.status_code}")
        try:
            parsed = VerifyResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthorityUnavailable("malformed authority response") from e
        if not parsed.success:
            raise AuthorityUnavailable(parsed.reason or "authority could not verify")
        return parsed

    def export_holders(self) -> List[HolderExport]:
        """Fetch the bulk cache refresh."""
        response = self._request("GET", self.EXPORT_PATH)
        if response.status_code != 200:
            raise AuthorityUnavailable(f"export failed with status {response.status_code}")
        try:
            return _EXPORT_ADAPTER.validate_python(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthorityUnavailable("malformed export response") from e

    def push_outcomes(self, outcomes: Iterable[VerificationOutcome]) -> int:
        """Deliver outcomes; returns how many the authority newly stored."""
        body = SyncPushRequest(entries=list(outcomes)).model_dump()
        try:
            response = self._request("POST", self.SYNC_PATH, json=body)
        except AuthorityUnavailable as e:
            raise SyncTransportFailure(e.reason) from e
        if response.status_code != 200:
            raise SyncTransportFailure(f"sync push failed with status {response.status_code}")
        try:
            return SyncPushResponse.model_validate(response.json()).syncedCount
        except (ValueError, ValidationError) as e:
            raise SyncTransportFailure("malformed sync response") from e

    def health(self) -> bool:
        try:
            response = self._request("GET", self.HEALTH_PATH)
        except AuthorityUnavailable:
            return False
        return response.status_code == 200
