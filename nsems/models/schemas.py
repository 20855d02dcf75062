# =======================================================================================
# nsems/models/schemas.py - Pydantic Models
# =======================================================================================
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from .enums import HolderStatusType, ResultType, SourceType

# ========== Holder records ==========

class HolderInfo(BaseModel):
    """Display data about a holder, safe to show on a scanner."""
    identifier: str
    name: Optional[str] = None
    status: HolderStatusType
    program: Optional[str] = None
    department: Optional[str] = None
    year: Optional[int] = None
    imageLink: Optional[str] = None

class HolderExport(BaseModel):
    """
    One row of the bulk cache refresh.

    Carries the holder's secret: scan points verify offline with it.
    """
    identifier: str = Field(..., min_length=1)
    secret: str = Field(..., min_length=1)
    status: HolderStatusType
    name: Optional[str] = None
    program: Optional[str] = None
    department: Optional[str] = None
    year: Optional[int] = None
    imageLink: Optional[str] = None

class CacheEntry(BaseModel):
    """A holder record as held in a scan point's local cache."""
    model_config = ConfigDict(frozen=True)

    identifier: str
    secret: Optional[str] = Field(None, repr=False)
    status: HolderStatusType
    name: Optional[str] = None
    program: Optional[str] = None
    department: Optional[str] = None
    year: Optional[int] = None
    imageLink: Optional[str] = None
    cachedAt: int = 0

    def to_holder_info(self) -> HolderInfo:
        return HolderInfo(**self.model_dump(exclude={"secret", "cachedAt"}))

# ========== Verification ==========

class VerifyRequest(BaseModel):
    """Verification request sent to the authority."""
    qrData: str = Field(..., min_length=1, max_length=512, description="Scanned token payload")
    scannerId: str = Field("unknown", max_length=64, description="Scan point identifier")

class VerifyResponse(BaseModel):
    """Verification response from the authority."""
    success: bool
    valid: bool
    result: Optional[ResultType] = None
    reason: Optional[str] = None
    holder: Optional[HolderInfo] = None
    expiresAtMs: Optional[int] = None
    timestamp: Optional[int] = None

class VerificationOutcome(BaseModel):
    """Exactly one per verification attempt; never changed afterwards."""
    model_config = ConfigDict(frozen=True)

    identifier: str
    window: int
    signaturePresented: str = ""
    result: ResultType
    verifiedAtLocalOrRemote: SourceType
    timestamp: int
    latencyMs: int = 0
    reason: Optional[str] = None
    scannerId: Optional[str] = None

    @property
    def idempotency_key(self):
        """Re-deliveries of the same outcome carry the same key."""
        return (self.identifier, self.window, self.timestamp)

class ScanRequest(BaseModel):
    """Payload read by a scan point."""
    qrData: str = Field(..., min_length=1, max_length=512)

class ScanResponse(BaseModel):
    """What the scan point shows after verifying a payload."""
    result: ResultType
    valid: bool
    reason: str
    source: SourceType
    holder: Optional[HolderInfo] = None
    latencyMs: int
    superseded: bool = False
    recorded: bool = True

# ========== Sync ==========

class SyncPushRequest(BaseModel):
    entries: List[VerificationOutcome]

class SyncPushResponse(BaseModel):
    syncedCount: int

class SyncStatusResponse(BaseModel):
    """Operator view of the scan point's sync queue."""
    pending: int
    dormant: int
    online: bool
    lastFlushAtMs: Optional[int] = None
    lastFlushSynced: int = 0
    cachedHolders: int = 0
    cacheRefreshedAtMs: Optional[int] = None

class FlushResponse(BaseModel):
    attempted: int
    synced: int
    failed: int
    dormant: int
    remaining: int

class CacheRefreshResponse(BaseModel):
    success: bool
    count: int
    message: str

class CanonicalLogItem(BaseModel):
    id: int
    identifier: str
    window: int
    result: ResultType
    reason: Optional[str] = None
    source: SourceType
    scannerId: Optional[str] = None
    timestamp: int
    latencyMs: int

class CanonicalLogResponse(BaseModel):
    total: int
    logs: List[CanonicalLogItem]

# ========== Serial scanner ==========

class SerialMessage(BaseModel):
    t: str
    id: Optional[int] = None
    dev: Optional[str] = None
    qr: Optional[str] = None

# ========== Health ==========

class HealthResponse(BaseModel):
    status: str                 # "ok" | "error" | "offline"
    dataAvailable: bool
    message: Optional[str] = None
