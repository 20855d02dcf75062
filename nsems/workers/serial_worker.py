# =======================================================================================
# nsems/workers/serial_worker.py - Background Serial Scanner Worker
# =======================================================================================
import logging
import time
import threading
from typing import Optional

import serial

from ..config import Config
from ..services.serial_service import SerialService

logger = logging.getLogger(__name__)


class SerialWorker:
    """Background worker reading payloads from a serial-attached QR scanner."""

    def __init__(self, cfg: Config, serial_service: SerialService):
        self.cfg = cfg
        self.serial_service = serial_service
        self.running = False
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------
    def start(self) -> bool:
        """Start the serial worker in a background thread."""
        if not self._should_start():
            return False

        self.running = True
        self._thread = threading.Thread(target=self._run_loop, name="serial-worker", daemon=True)
        self._thread.start()
        logger.info("[serial] Worker started")
        return True

    def stop(self):
        """Stop the serial worker."""
        self.running = False

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------
    def _should_start(self) -> bool:
        if not self.cfg.SERIAL_PORT:
            logger.debug("[serial] SERIAL_PORT not configured; skipping scanner worker.")
            return False
        return True

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def _run_loop(self):
        """Main serial communication loop."""
        while self.running:
            try:
                self._handle_serial_connection()
            except serial.SerialException as e:
                logger.warning("[serial] Connection error: %s; retrying in 3s", e)
                time.sleep(3)

    def _handle_serial_connection(self):
        logger.info("[serial] Opening %s @ %s", self.cfg.SERIAL_PORT, self.cfg.SERIAL_BAUD)

        with serial.Serial(
            self.cfg.SERIAL_PORT, self.cfg.SERIAL_BAUD, timeout=self.cfg.SERIAL_TIMEOUT
        ) as ser:
            logger.info("[serial] Port open.")

            while self.running:
                line = ser.readline().decode(errors="ignore").strip()
                if not line:
                    continue

                response = self.serial_service.process_line(line)
                if response:
                    ser.write(self.serial_service.encode(response))
                    logger.debug("[serial] Sent: %s", response)
