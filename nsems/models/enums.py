# =======================================================================================
# nsems/models/enums.py - Enums and Constants
# =======================================================================================
from enum import Enum
from typing import Literal

# Type aliases for better type hints
HolderStatusType = Literal["active", "suspended", "graduated"]
ResultType = Literal["valid", "invalid", "expired"]
SourceType = Literal["local", "remote"]
LookupOrder = Literal["authority_first", "cache_first"]

class HolderStatus(str, Enum):
    """Credential status as managed by administrators."""
    ACTIVE = "active"
    SUSPENDED = "suspended"
    GRADUATED = "graduated"

class VerificationResult(str, Enum):
    """Classification of a presented token."""
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"

class VerificationSource(str, Enum):
    """Which side answered a verification."""
    LOCAL = "local"
    REMOTE = "remote"

class VerifierState(str, Enum):
    """Steps of a single verification run."""
    IDLE = "Idle"
    PARSING = "Parsing"
    WINDOW_CHECK = "WindowCheck"
    AUTHORITY_LOOKUP = "AuthorityLookup"
    CACHE_LOOKUP = "CacheLookup"
    SIGNATURE_CHECK = "SignatureCheck"
    STATUS_CHECK = "StatusCheck"
    OUTCOME = "Outcome"

class Reason:
    """Reason strings reported alongside a classification."""
    OK = "ok"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    SIGNATURE_MISMATCH = "signature mismatch"
    HOLDER_NOT_ACTIVE = "holder not active"
    HOLDER_NOT_FOUND = "holder not found"
    DATA_UNAVAILABLE = "verification data unavailable"
    INTERNAL_ERROR = "internal error"
