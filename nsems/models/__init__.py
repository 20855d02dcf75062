# =======================================================================================
# nsems/models/__init__.py - Models Package
# =======================================================================================
from .schemas import *
from .enums import *

__all__ = [
    "HolderInfo", "HolderExport", "CacheEntry", "VerifyRequest", "VerifyResponse",
    "VerificationOutcome", "ScanRequest", "ScanResponse", "SyncPushRequest",
    "SyncPushResponse", "SyncStatusResponse", "FlushResponse", "CacheRefreshResponse",
    "CanonicalLogItem", "CanonicalLogResponse", "SerialMessage", "HealthResponse",
    "HolderStatusType", "ResultType", "SourceType", "LookupOrder", "HolderStatus",
    "VerificationResult", "VerificationSource", "VerifierState", "Reason",
]
