# =======================================================================================
# nsems/config.py - Configuration Management
# =======================================================================================
import os
from typing import Optional, Dict, Any, get_args
from dotenv import load_dotenv
from .models.enums import LookupOrder

load_dotenv()

def _env_int(name: str, default: int) -> int:
    """Helper to parse integer environment variables."""
    v = (os.getenv(name) or "").strip()
    digits = v.lstrip("-")
    return int(v) if digits.isascii() and digits.isdigit() else default

def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")

LOOKUP_ORDERS = get_args(LookupOrder)


class Config:
    """
    Runtime settings read from the environment (and a local .env file).

    Any attribute can be overridden by keyword, which is how services and
    tests get their own configuration instead of the module default.
    """

    def __init__(self, **overrides: Any):
        # Databases
        self.AUTHORITY_DB_URL: str = os.getenv("AUTHORITY_DB_URL", "sqlite:///./authority.db")
        self.DEVICE_DB_URL: str = os.getenv("DEVICE_DB_URL", "sqlite:///./device.db")
        self.DB_POOL_SIZE: int = _env_int("DB_POOL_SIZE", 10)
        self.DB_MAX_OVERFLOW: int = _env_int("DB_MAX_OVERFLOW", 20)

        # API Settings
        self.API_DEBUG: bool = _env_bool("API_DEBUG", False)
        self.API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
        self.API_PORT: int = _env_int("API_PORT", 8000)

        # Scan point identity and authority location
        self.AUTHORITY_URL: str = os.getenv("AUTHORITY_URL", "http://127.0.0.1:8000")
        self.SCANNER_ID: str = os.getenv("SCANNER_ID", "scanner-1")

        # Token protocol
        self.ROTATION_INTERVAL_MS: int = _env_int("ROTATION_INTERVAL_MS", 60000)
        self.WINDOW_TOLERANCE: int = _env_int("WINDOW_TOLERANCE", 1)
        self.VERIFY_TIMEOUT_MS: int = _env_int("VERIFY_TIMEOUT_MS", 3000)
        self.LOOKUP_ORDER: LookupOrder = os.getenv("LOOKUP_ORDER", "authority_first")
        self.SCAN_DEBOUNCE_MS: int = _env_int("SCAN_DEBOUNCE_MS", 2000)

        # Sync Settings
        self.MAX_AUTO_SYNC_ATTEMPTS: int = _env_int("MAX_AUTO_SYNC_ATTEMPTS", 3)
        self.SYNC_INTERVAL_SECONDS: int = _env_int("SYNC_INTERVAL_SECONDS", 30)
        self.SYNC_BACKOFF_BASE_SECONDS: int = _env_int("SYNC_BACKOFF_BASE_SECONDS", 5)
        self.CACHE_REFRESH_ON_RECONNECT: bool = _env_bool("CACHE_REFRESH_ON_RECONNECT", True)

        # Serial-attached QR scanner
        self.SERIAL_PORT: str = os.getenv("SERIAL_PORT", "")
        self.SERIAL_BAUD: int = _env_int("SERIAL_BAUD", 115200)
        self.SERIAL_TIMEOUT: int = _env_int("SERIAL_TIMEOUT", 1)

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown config key: {key}")
            setattr(self, key, value)

        if self.LOOKUP_ORDER not in LOOKUP_ORDERS:
            raise ValueError(f"LOOKUP_ORDER must be one of {LOOKUP_ORDERS}, got {self.LOOKUP_ORDER!r}")
        if self.ROTATION_INTERVAL_MS <= 0:
            raise ValueError("ROTATION_INTERVAL_MS must be positive")
        if self.WINDOW_TOLERANCE < 0:
            raise ValueError("WINDOW_TOLERANCE must not be negative")

    @property
    def verify_timeout_seconds(self) -> float:
        return self.VERIFY_TIMEOUT_MS / 1000.0

    def core_settings(self) -> Dict[str, int]:
        """The protocol knobs as they are named on the wire."""
        return {
            "rotationIntervalMs": self.ROTATION_INTERVAL_MS,
            "windowTolerance": self.WINDOW_TOLERANCE,
            "verifyTimeoutMs": self.VERIFY_TIMEOUT_MS,
            "maxAutoSyncAttempts": self.MAX_AUTO_SYNC_ATTEMPTS,
        }

config = Config()
