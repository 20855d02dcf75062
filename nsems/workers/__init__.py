# =======================================================================================
# nsems/workers/__init__.py - Workers Package
# =======================================================================================
from .serial_worker import SerialWorker
from .sync_worker import SyncWorker

__all__ = ["SerialWorker", "SyncWorker"]
