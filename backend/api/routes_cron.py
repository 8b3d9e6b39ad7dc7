"""
Cron API Routes

Triggered by the external scheduler with ``Authorization: Bearer <CRON_SECRET>``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from config import settings
from services.maintenance import maintenance_service
from services.market_sync import market_sync_service
from utils.logger import get_logger
from utils.security import extract_bearer_token, safe_error_message, verify_cron_secret

logger = get_logger(__name__)
router = APIRouter(prefix="/cron", tags=["Cron"])


async def require_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not verify_cron_secret(extract_bearer_token(authorization), settings.CRON_SECRET):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/sync-markets", dependencies=[Depends(require_cron_secret)])
async def sync_markets():
    """Reconcile the local market table with Polymarket's top markets."""
    try:
        result = await market_sync_service.sync()
    except Exception as e:
        logger.error("Market sync failed", error=str(e))
        raise HTTPException(status_code=500, detail=safe_error_message(e))
    return result.model_dump()


@router.post("/maintenance", dependencies=[Depends(require_cron_secret)])
async def run_maintenance():
    """Prune old system logs."""
    try:
        result = await maintenance_service.run_maintenance()
    except Exception as e:
        logger.error("Maintenance failed", error=str(e))
        raise HTTPException(status_code=500, detail=safe_error_message(e))
    return {"success": True, **result}
