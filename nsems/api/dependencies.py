# =======================================================================================
# nsems/api/dependencies.py - FastAPI Dependencies
# =======================================================================================
from fastapi import HTTPException, Request
from ..runtime import AuthorityRuntime, DeviceRuntime

def get_authority(request: Request) -> AuthorityRuntime:
    """Dependency to get the authority object graph."""
    runtime = getattr(request.app.state, "authority", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Authority runtime not initialised")
    return runtime

def get_device(request: Request) -> DeviceRuntime:
    """Dependency to get the scan point object graph."""
    runtime = getattr(request.app.state, "device", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Scan point runtime not initialised")
    return runtime
