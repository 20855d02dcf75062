# =======================================================================================
# nsems/api/routes/scan.py - Scan Point Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends
from ...models.schemas import ScanRequest, ScanResponse
from ...runtime import DeviceRuntime
from ..dependencies import get_device

router = APIRouter()

@router.post("/scan", response_model=ScanResponse)
def handle_scan(request: ScanRequest, device: DeviceRuntime = Depends(get_device)):
    """Verify a scanned payload on this scan point."""
    return device.verifier.verify(request.qrData).to_response()
