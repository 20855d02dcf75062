# =======================================================================================
# nsems/api/routes/holders.py - Holder Export for Scan Point Caches
# =======================================================================================
from typing import List
from fastapi import APIRouter, Depends
from ...models.schemas import HolderExport
from ...runtime import AuthorityRuntime
from ..dependencies import get_authority

router = APIRouter()

@router.get("/holders/sync-all", response_model=List[HolderExport])
def sync_all_holders(authority: AuthorityRuntime = Depends(get_authority)):
    """
    Active holders with their secrets, for offline verification.

    Exposing secrets here is the cost of verifying without the network: a
    compromised scan point can mint tokens for every exported holder.
    """
    return authority.service.export_for_cache()
