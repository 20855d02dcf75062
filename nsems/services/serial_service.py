# nsems/services/serial_service.py
import json
from typing import Optional, Dict, Any
from pydantic import ValidationError
from ..models.schemas import SerialMessage
from .verifier import Verifier, VerificationReport


class SerialService:
    """Turns lines from a serial-attached QR scanner into verification replies."""

    def __init__(self, verifier: Verifier, scanner_id: str):
        self.verifier = verifier
        self.scanner_id = scanner_id

    # ----------------------------------------------------------------------
    # Line parsing
    # ----------------------------------------------------------------------
    @staticmethod
    def parse_line(line: str) -> Optional[SerialMessage]:
        """
        Scanners either emit the bare payload or a JSON request
        ``{"t": "req", "id": 7, "qr": "..."}``.
        """
        line = line.strip()
        if not line:
            return None
        if line.startswith("{"):
            try:
                return SerialMessage.model_validate_json(line)
            except ValidationError:
                return None
        return SerialMessage(t="req", qr=line)

    # ----------------------------------------------------------------------
    # Core request handler
    # ----------------------------------------------------------------------
    def process_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Verify one scanned line; returns the reply or None for noise."""
        message = self.parse_line(line)
        if message is None or message.t != "req" or not message.qr:
            return None
        report = self.verifier.verify(message.qr, message.dev or self.scanner_id)
        return self.create_response_message(message, report)

    # ----------------------------------------------------------------------
    # Response builder
    # ----------------------------------------------------------------------
    @staticmethod
    def create_response_message(message: SerialMessage, report: VerificationReport) -> Dict[str, Any]:
        """Generate JSON-serializable dict to send back to the scanner."""
        holder = report.holder
        return {
            "t": "resp",
            "id": message.id,
            "status": 1 if report.valid else 0,
            "result": report.outcome.result,
            "reason": report.outcome.reason,
            "src": report.outcome.verifiedAtLocalOrRemote,
            "ts": report.outcome.timestamp,
            "name": holder.name if holder and holder.name else "Unknown",
        }

    @staticmethod
    def encode(response: Dict[str, Any]) -> bytes:
        return (json.dumps(response) + "\n").encode()
