from fastapi import APIRouter
from fastapi.responses import JSONResponse

from services.health import run_health_checks

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Database, configuration and integrity checks. 503 if any fails."""
    report = await run_health_checks()
    return JSONResponse(status_code=200 if report["status"] == "ok" else 503, content=report)
