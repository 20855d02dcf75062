# =======================================================================================
# nsems/services/connectivity.py - Authority Reachability
# =======================================================================================
import logging
import threading
from typing import Callable, List, Optional

from .authority_client import AuthorityClient

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Tracks whether the authority is believed reachable from this scan point."""

    def __init__(self, client: Optional[AuthorityClient] = None, online: bool = True):
        self.client = client
        self._online = online
        self._lock = threading.Lock()
        self._on_reconnect: List[Callable[[], None]] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def on_reconnect(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback for offline -> online; returns an unsubscribe callable."""
        self._on_reconnect.append(callback)

        def unsubscribe() -> None:
            if callback in self._on_reconnect:
                self._on_reconnect.remove(callback)

        return unsubscribe

    def mark_offline(self) -> None:
        with self._lock:
            changed = self._online
            self._online = False
        if changed:
            logger.info("[net] Authority unreachable; scan point is offline")

    def mark_online(self) -> None:
        with self._lock:
            changed = not self._online
            self._online = True
        if changed:
            logger.info("[net] Authority reachable again")
            for callback in list(self._on_reconnect):
                try:
                    callback()
                except Exception:
                    logger.exception("[net] Reconnect callback failed")

    def probe(self) -> bool:
        """Check the authority health endpoint and update state."""
        if self.client is None:
            return self._online
        if self.client.health():
            self.mark_online()
        else:
            self.mark_offline()
        return self._online
