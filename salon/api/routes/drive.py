from fastapi import APIRouter, Depends

from salon.api.deps import get_token_monitor, require_admin
from salon.api.schemas.drive import DriveStatusOut
from salon.services.token_monitor import TokenMonitor

router = APIRouter(prefix="/drive", tags=["drive"], dependencies=[Depends(require_admin)])


@router.get("/status", response_model=DriveStatusOut)
async def drive_status(monitor: TokenMonitor = Depends(get_token_monitor)) -> DriveStatusOut:
    return DriveStatusOut(**monitor.snapshot())


@router.post("/check", response_model=DriveStatusOut)
async def check_now(monitor: TokenMonitor = Depends(get_token_monitor)) -> DriveStatusOut:
    """Run a token check immediately instead of waiting for the next cycle."""
    await monitor.check_once()
    return DriveStatusOut(**monitor.snapshot())
