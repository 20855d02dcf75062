# =======================================================================================
# nsems/utils/__init__.py - Utils Package
# =======================================================================================
from .exceptions import *
from .validators import *

__all__ = [
    "TokenCoreError", "MalformedInput", "WindowOutOfRange", "SignatureMismatch",
    "HolderInactive", "HolderNotFound", "LookupUnavailable", "AuthorityUnavailable",
    "SyncTransportFailure", "TokenValidator", "ParsedToken", "ParseResult", "Ok", "Err",
    "format_payload",
]
