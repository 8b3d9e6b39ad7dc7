"""
Admin API Routes

Password login issuing a session cookie, logout, and the dashboard feeds.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.gatekeeper import resolve_client_identity
from config import settings
from models.database import get_db_session
from services.auth import (
    ADMIN_ROLE,
    clear_session_cookie,
    is_authenticated,
    issue_session_token,
    require_admin,
    set_session_cookie,
)
from services.maintenance import maintenance_service
from services.system_log import list_system_logs, log_system_event
from utils.logger import auth_logger, get_logger
from utils.rate_limiter import rate_limiter
from utils.security import safe_error_message, verify_admin_password
from utils.utcnow import utcnow
from utils.validation import LoginRequest, parse_int_param, require_field, severity_filter

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin"])

LOGS_DEFAULT_LIMIT = 100
LOGS_MAX_LIMIT = 500


def _no_cache(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    response.headers["Pragma"] = "no-cache"


# ==================== SESSION ====================


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
):
    """Exchange the admin password for a 7-day session cookie."""
    password = require_field(body.password, "Password")
    client = resolve_client_identity(request.headers)

    if not verify_admin_password(password, settings.ADMIN_PASSWORD):
        auth_logger.warning("Admin login failed", client=client)
        await log_system_event("admin_login_failed", {"ip": client}, "warning", session=session)
        raise HTTPException(status_code=401, detail="Invalid password")

    try:
        token = issue_session_token(ADMIN_ROLE, settings.session_secret)
    except Exception as e:
        logger.error("Failed to issue session token", error=str(e))
        raise HTTPException(status_code=500, detail=safe_error_message(e))

    await log_system_event("admin_login_success", {"ip": client}, session=session)
    auth_logger.info("Admin login succeeded", client=client)

    set_session_cookie(response, token)
    return {"success": True}


@router.delete("/login")
async def logout(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
):
    if not is_authenticated(request):
        raise HTTPException(status_code=401, detail="Unauthorized")

    client = resolve_client_identity(request.headers)
    await log_system_event("admin_logout", {"ip": client}, session=session)
    auth_logger.info("Admin logged out", client=client)

    clear_session_cookie(response)
    return {"success": True}


# ==================== DASHBOARD ====================


@router.get("/stats", dependencies=[Depends(require_admin)])
async def get_admin_stats(response: Response):
    try:
        stats = await maintenance_service.get_database_stats()
    except Exception as e:
        logger.error("Failed to get admin stats", error=str(e))
        raise HTTPException(status_code=500, detail=safe_error_message(e))

    _no_cache(response)
    return {
        **stats,
        "rate_limits": rate_limiter.get_status(),
        "updated_at": utcnow().isoformat() + "Z",
    }


@router.get("/logs", dependencies=[Depends(require_admin)])
async def get_admin_logs(
    response: Response,
    severity: Optional[str] = Query(None, description="info, warning, error or all"),
    limit: Optional[str] = Query(None, description=f"Max rows, default {LOGS_DEFAULT_LIMIT}"),
    session: AsyncSession = Depends(get_db_session),
):
    row_limit = parse_int_param(limit, LOGS_DEFAULT_LIMIT, LOGS_MAX_LIMIT)
    try:
        logs = await list_system_logs(session, severity=severity_filter(severity), limit=row_limit)
    except Exception as e:
        logger.error("Failed to list system logs", error=str(e))
        raise HTTPException(status_code=500, detail=safe_error_message(e))

    _no_cache(response)
    return {"logs": logs, "updated_at": utcnow().isoformat() + "Z"}
