# =======================================================================================
# nsems/runtime.py - Object Graphs for the Authority and a Scan Point
# =======================================================================================
"""
Both participants are assembled here from a ``Config``. Collaborators are
passed by reference; nothing is held at module scope.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from .config import Config
from .database import DatabaseManager
from .schema import AUTHORITY_SCHEMA, DEVICE_SCHEMA
from .services.authority_client import AuthorityClient
from .services.authority_service import AuthorityService
from .services.connectivity import ConnectivityMonitor
from .services.credential_store import CredentialStore
from .services.event_log import EventLog
from .services.local_cache import LocalVerificationCache
from .services.serial_service import SerialService
from .services.sync_service import SyncService
from .services.token_service import TokenService, now_ms
from .services.verifier import Verifier
from .workers.serial_worker import SerialWorker
from .workers.sync_worker import SyncWorker

logger = logging.getLogger(__name__)


@dataclass
class AuthorityRuntime:
    cfg: Config
    db: DatabaseManager
    tokens: TokenService
    store: CredentialStore
    service: AuthorityService

    def stop(self) -> None:
        self.db.dispose()


@dataclass
class DeviceRuntime:
    cfg: Config
    db: DatabaseManager
    tokens: TokenService
    cache: LocalVerificationCache
    events: EventLog
    client: AuthorityClient
    connectivity: ConnectivityMonitor
    sync: SyncService
    verifier: Verifier
    sync_worker: SyncWorker
    serial_worker: SerialWorker
    _unsubscribe: Optional[object] = field(default=None, repr=False)

    def start(self) -> None:
        """Hook reconnect handling and start the background workers."""
        if self._unsubscribe is None:
            self._unsubscribe = self.connectivity.on_reconnect(self.sync.handle_reconnect)
        self.sync_worker.start()
        self.serial_worker.start()

    def stop(self) -> None:
        self.serial_worker.stop()
        self.sync_worker.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.client.close()
        self.db.dispose()


def build_authority(cfg: Config, clock=now_ms) -> AuthorityRuntime:
    db = DatabaseManager(cfg.AUTHORITY_DB_URL, cfg)
    db.create_schema(AUTHORITY_SCHEMA)
    tokens = TokenService(cfg)
    store = CredentialStore(db)
    service = AuthorityService(store, tokens, db, clock=clock)
    return AuthorityRuntime(cfg=cfg, db=db, tokens=tokens, store=store, service=service)


def build_device(
    cfg: Config,
    http_client: Optional[httpx.Client] = None,
    online: bool = True,
    clock=now_ms,
) -> DeviceRuntime:
    db = DatabaseManager(cfg.DEVICE_DB_URL, cfg)
    db.create_schema(DEVICE_SCHEMA)
    tokens = TokenService(cfg)
    cache = LocalVerificationCache(db, clock=clock)
    events = EventLog(db, clock=clock)
    client = AuthorityClient(cfg, http_client=http_client)
    connectivity = ConnectivityMonitor(client, online=online)
    sync = SyncService(cfg, events, client, connectivity, cache=cache, clock=clock)
    verifier = Verifier(cfg, tokens, cache, events, client=client, connectivity=connectivity, clock=clock)
    return DeviceRuntime(
        cfg=cfg,
        db=db,
        tokens=tokens,
        cache=cache,
        events=events,
        client=client,
        connectivity=connectivity,
        sync=sync,
        verifier=verifier,
        sync_worker=SyncWorker(sync, cfg.SYNC_INTERVAL_SECONDS),
        serial_worker=SerialWorker(cfg, SerialService(verifier, cfg.SCANNER_ID)),
    )
