# =======================================================================================
# nsems/services/token_service.py - Token Derivation and Checking
# =======================================================================================
import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Optional, Union

from ..config import Config
from ..models.enums import HolderStatus
from ..utils.exceptions import HolderInactive, LookupUnavailable, SignatureMismatch
from ..utils.validators import ParsedToken, TokenValidator, format_payload

Secret = Union[str, bytes]


def now_ms() -> int:
    return int(time.time() * 1000)


def _key_bytes(secret: Secret) -> bytes:
    return secret if isinstance(secret, bytes) else secret.encode("utf-8")


@dataclass(frozen=True)
class IssuedToken:
    """A token as shown to a holder."""
    identifier: str
    window: int
    payload: str
    expires_at_ms: int
    generated_at_ms: int


class TokenService:
    """Derives and checks time-windowed tokens (HMAC-SHA256)."""

    def __init__(self, cfg: Config):
        self.rotation_interval_ms = cfg.ROTATION_INTERVAL_MS
        self.window_tolerance = cfg.WINDOW_TOLERANCE

    @staticmethod
    def derive(identifier: str, window: int, secret: Secret) -> bytes:
        """MAC over ``identifier|window`` keyed with the holder secret."""
        message = f"{identifier}|{window}".encode("utf-8")
        return hmac.new(_key_bytes(secret), message, hashlib.sha256).digest()

    @staticmethod
    def verify_signature(presented: bytes, expected: bytes) -> bool:
        """Constant-time comparison."""
        return hmac.compare_digest(presented, expected)

    @staticmethod
    def current_window(now: int, rotation_interval_ms: int) -> int:
        return now // rotation_interval_ms

    def window_at(self, now: int) -> int:
        return self.current_window(now, self.rotation_interval_ms)

    def expires_at_ms(self, window: int) -> int:
        return (window + 1) * self.rotation_interval_ms

    def issue(self, identifier: str, secret: Secret, now: Optional[int] = None) -> IssuedToken:
        """Build the payload a holder device renders for the current window."""
        now = now_ms() if now is None else now
        window = self.window_at(now)
        signature = self.derive(identifier, window, secret)
        return IssuedToken(
            identifier=identifier,
            window=window,
            payload=format_payload(identifier, window, signature),
            expires_at_ms=self.expires_at_ms(window),
            generated_at_ms=now,
        )

    def check_window(self, token: ParsedToken, now: int) -> None:
        TokenValidator.check_window(token.window, self.window_at(now), self.window_tolerance)

    def check_credential(self, token: ParsedToken, secret: Optional[Secret], status: str) -> None:
        """
        Signature then status. Raises the matching TokenCoreError subclass;
        returns quietly when the token is valid for this credential.
        """
        if not secret:
            raise LookupUnavailable()
        expected = self.derive(token.identifier, token.window, secret)
        if not self.verify_signature(token.signature, expected):
            raise SignatureMismatch()
        if status != HolderStatus.ACTIVE.value:
            raise HolderInactive()
