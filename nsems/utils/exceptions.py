# =======================================================================================
# nsems/utils/exceptions.py - Custom Exceptions
# =======================================================================================
from ..models.enums import Reason, VerificationResult

class TokenCoreError(Exception):
    """Base exception for the token protocol core."""
    result = VerificationResult.INVALID.value
    default_reason = Reason.INTERNAL_ERROR

    def __init__(self, reason: str = None):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)

class MalformedInput(TokenCoreError):
    """Raised when a payload has the wrong field count or a bad window."""
    default_reason = Reason.MALFORMED

class WindowOutOfRange(TokenCoreError):
    """Raised when the presented window is too far from the current one."""
    result = VerificationResult.EXPIRED.value
    default_reason = Reason.EXPIRED

class SignatureMismatch(TokenCoreError):
    """Raised when the presented signature is not the expected one."""
    default_reason = Reason.SIGNATURE_MISMATCH

class HolderInactive(TokenCoreError):
    """Raised when the holder is suspended or graduated."""
    default_reason = Reason.HOLDER_NOT_ACTIVE

class HolderNotFound(TokenCoreError):
    """Raised when the authority has no record of the identifier."""
    default_reason = Reason.HOLDER_NOT_FOUND

class LookupUnavailable(TokenCoreError):
    """Raised when neither the cache nor the authority could answer."""
    default_reason = Reason.DATA_UNAVAILABLE

class AuthorityUnavailable(TokenCoreError):
    """Raised when the authority times out, is unreachable or answers garbage."""
    default_reason = "authority unavailable"

class SyncTransportFailure(TokenCoreError):
    """Raised when a sync push does not reach the authority."""
    default_reason = "sync transport failure"
