# =======================================================================================
# nsems/services/token_rotator.py - Holder Token Rotation
# =======================================================================================
import logging
import threading
from typing import Callable, List, Optional

from ..utils.exceptions import TokenCoreError
from .token_service import IssuedToken, Secret, TokenService, now_ms

logger = logging.getLogger(__name__)

RETRY_DELAY_MS = 5000


class TokenRotator:
    """Keeps one holder's displayed token current, one per time window."""

    def __init__(self, identifier: str, secret: Optional[Secret], tokens: TokenService, clock=now_ms):
        self.identifier = identifier
        self.secret = secret
        self.tokens = tokens
        self.clock = clock
        self._current: Optional[IssuedToken] = None
        self._listeners: List[Callable[[IssuedToken], None]] = []
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self.running = False

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------
    def refresh(self) -> IssuedToken:
        """Regenerate the token for the current window and notify listeners."""
        if not self.identifier:
            raise TokenCoreError("identifier not available")
        if not self.secret:
            raise TokenCoreError("secret key not available")
        token = self.tokens.issue(self.identifier, self.secret, self.clock())
        with self._lock:
            self._current = token
        self._notify(token)
        return token

    def current(self) -> IssuedToken:
        """The token for the current window, regenerated if the last one lapsed."""
        token = self._current
        if token is None or not self.is_valid():
            token = self.refresh()
        return token

    def is_valid(self) -> bool:
        return self._current is not None and self.clock() < self._current.expires_at_ms

    def time_remaining_seconds(self) -> int:
        if self._current is None:
            return 0
        return max(0, (self._current.expires_at_ms - self.clock()) // 1000)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, callback: Callable[[IssuedToken], None]) -> Callable[[], None]:
        """Register for token updates; the current token is delivered at once."""
        self._listeners.append(callback)
        if self._current is not None:
            callback(self._current)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, token: IssuedToken) -> None:
        for callback in list(self._listeners):
            try:
                callback(token)
            except Exception:
                logger.exception("[token] Listener failed")

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------
    def _ms_to_next_window(self) -> int:
        interval = self.tokens.rotation_interval_ms
        return interval - (self.clock() % interval)

    def _tick(self) -> None:
        if not self.running:
            return
        try:
            self.refresh()
            delay = self._ms_to_next_window()
        except TokenCoreError as e:
            logger.warning("[token] Refresh failed: %s", e.reason)
            delay = RETRY_DELAY_MS
        self._schedule(delay)

    def _schedule(self, delay_ms: int) -> None:
        if not self.running:
            return
        timer = threading.Timer(delay_ms / 1000.0, self._tick)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def start(self) -> None:
        """Generate now and again at every window boundary."""
        self.stop()
        self.running = True
        self._tick()

    def stop(self) -> None:
        self.running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self) -> None:
        """Stop rotating and forget the token and listeners."""
        self.stop()
        self._listeners.clear()
        self._current = None
