# =======================================================================================
# nsems/api/routes/sync.py - Synchronization Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends
from ...models.schemas import CacheRefreshResponse, FlushResponse, SyncStatusResponse
from ...runtime import DeviceRuntime
from ...utils.exceptions import AuthorityUnavailable
from ..dependencies import get_device

router = APIRouter()

@router.get("/sync/status", response_model=SyncStatusResponse)
def get_sync_status(device: DeviceRuntime = Depends(get_device)):
    """Pending queue length and cache freshness for operators."""
    return device.sync.status()

@router.post("/sync/trigger", response_model=FlushResponse)
def trigger_sync(device: DeviceRuntime = Depends(get_device)):
    """Manual flush; dormant entries are retried too."""
    report = device.sync.flush(manual=True)
    return FlushResponse(
        attempted=report.attempted,
        synced=report.synced,
        failed=report.failed,
        dormant=report.dormant,
        remaining=report.remaining,
    )

@router.post("/cache/refresh", response_model=CacheRefreshResponse)
def refresh_cache(device: DeviceRuntime = Depends(get_device)):
    try:
        count = device.sync.refresh_cache()
    except AuthorityUnavailable as e:
        device.connectivity.mark_offline()
        return CacheRefreshResponse(success=False, count=device.cache.count(), message=e.reason)
    return CacheRefreshResponse(success=True, count=count, message="Cache refreshed")
