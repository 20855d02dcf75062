# =======================================================================================
# nsems/services/__init__.py - Services Package
# =======================================================================================
from .token_service import TokenService, IssuedToken
from .token_rotator import TokenRotator
from .credential_store import CredentialStore, generate_secret
from .local_cache import LocalVerificationCache
from .authority_client import AuthorityClient
from .authority_service import AuthorityService
from .connectivity import ConnectivityMonitor
from .event_log import EventLog, RecordResult
from .sync_service import SyncService, FlushReport
from .verifier import Verifier, VerificationReport
from .serial_service import SerialService

__all__ = [
    "TokenService", "IssuedToken", "TokenRotator", "CredentialStore", "generate_secret",
    "LocalVerificationCache", "AuthorityClient", "AuthorityService", "ConnectivityMonitor",
    "EventLog", "RecordResult", "SyncService", "FlushReport", "Verifier",
    "VerificationReport", "SerialService",
]
