# =======================================================================================
# nsems/api/routes/scanner.py - Authority Verification and Log Endpoints
# =======================================================================================
from typing import Optional
from fastapi import APIRouter, Depends, Query
from ...models.schemas import (
    CanonicalLogResponse,
    SyncPushRequest,
    SyncPushResponse,
    VerifyRequest,
    VerifyResponse,
)
from ...runtime import AuthorityRuntime
from ..dependencies import get_authority

router = APIRouter()

@router.post("/scanner/validate", response_model=VerifyResponse)
def validate_qr(request: VerifyRequest, authority: AuthorityRuntime = Depends(get_authority)):
    """
    Classify a scanned payload against the authoritative secret.

    Token problems are reported as ``valid=false`` with a reason, not as HTTP
    errors. Every classified attempt lands in the canonical log.
    """
    return authority.service.verify(request)

@router.post("/scanner/sync-logs", response_model=SyncPushResponse)
def sync_logs(request: SyncPushRequest, authority: AuthorityRuntime = Depends(get_authority)):
    """Store outcomes pushed by scan points. Safe to retry."""
    return SyncPushResponse(syncedCount=authority.service.record_outcomes(request.entries))

@router.get("/scanner/logs", response_model=CanonicalLogResponse)
def get_logs(
    limit: int = Query(100, ge=1, le=1000),
    identifier: Optional[str] = Query(None),
    authority: AuthorityRuntime = Depends(get_authority),
):
    total, logs = authority.service.recent_logs(limit=limit, identifier=identifier)
    return CanonicalLogResponse(total=total, logs=logs)
