# =======================================================================================
# nsems/utils/validators.py - Token Payload Parsing
# =======================================================================================
"""
Boundary parsing for scanned payloads.

A payload is ``identifier|window|hexSignature``. It is parsed once into a
``ParsedToken``; everything downstream works on that value and never looks at
the raw string again.
"""
import re
from dataclasses import dataclass
from typing import Union

from .exceptions import MalformedInput, WindowOutOfRange

SEPARATOR = "|"
_HEX_RE = re.compile(r"^[0-9a-f]+$")


@dataclass(frozen=True)
class ParsedToken:
    identifier: str
    window: int
    signature: bytes

    @property
    def signature_hex(self) -> str:
        return self.signature.hex()

    def serialize(self) -> str:
        return format_payload(self.identifier, self.window, self.signature)


@dataclass(frozen=True)
class Ok:
    value: ParsedToken
    ok = True


@dataclass(frozen=True)
class Err:
    error: MalformedInput
    # best-effort fields recovered from a bad payload, for the event log
    identifier: str = ""
    window: int = 0
    ok = False


ParseResult = Union[Ok, Err]


def format_payload(identifier: str, window: int, signature: bytes) -> str:
    """Serialize a token into its QR payload."""
    return f"{identifier}{SEPARATOR}{window}{SEPARATOR}{signature.hex()}"


class TokenValidator:
    """Parses payloads and checks window freshness."""

    @staticmethod
    def parse(raw: str) -> ParseResult:
        """Split a payload into its three fields; never raises."""
        if not isinstance(raw, str):
            return Err(MalformedInput())

        # scanners sometimes append whitespace or line breaks
        cleaned = re.sub(r"\s+", "", raw)
        parts = cleaned.split(SEPARATOR)
        if len(parts) != 3:
            return Err(MalformedInput(), identifier=parts[0] if parts else "")

        identifier, window_str, sig_hex = parts
        if not identifier:
            return Err(MalformedInput())

        # ascii only: int() rejects digits such as "²" that isdigit() accepts
        if not (window_str.isascii() and window_str.isdigit()):
            return Err(MalformedInput(), identifier=identifier)
        window = int(window_str)
        if window <= 0:
            return Err(MalformedInput(), identifier=identifier)

        sig_hex = sig_hex.lower()
        if not sig_hex or len(sig_hex) % 2 or not _HEX_RE.match(sig_hex):
            return Err(MalformedInput(), identifier=identifier, window=window)

        return Ok(ParsedToken(identifier, window, bytes.fromhex(sig_hex)))

    @staticmethod
    def check_window(presented: int, current: int, tolerance: int) -> None:
        """Raise WindowOutOfRange when the presented window is stale or early."""
        if abs(current - presented) > tolerance:
            raise WindowOutOfRange()
