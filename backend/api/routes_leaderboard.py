"""
Public read API: leaderboard and recent decisions.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from models.database import get_db_session
from services.leaderboard import get_aggregate_leaderboard, get_cohort_summaries, get_recent_decisions
from utils.logger import get_logger
from utils.security import safe_error_message
from utils.utcnow import utcnow
from utils.validation import parse_int_param

logger = get_logger(__name__)
router = APIRouter(tags=["Leaderboard"])

LEADERBOARD_CACHE_CONTROL = "public, max-age=300, stale-while-revalidate=60"
DECISIONS_CACHE_CONTROL = "public, max-age=120"
DECISIONS_DEFAULT_LIMIT = 10
DECISIONS_MAX_LIMIT = 50


@router.get("/leaderboard")
async def get_leaderboard(response: Response, session: AsyncSession = Depends(get_db_session)):
    """Aggregate model standings plus every cohort, newest first."""
    try:
        leaderboard = await get_aggregate_leaderboard(session)
        cohorts = await get_cohort_summaries(session)
    except Exception as e:
        logger.error("Failed to build leaderboard", error=str(e))
        raise HTTPException(status_code=500, detail=safe_error_message(e))

    response.headers["Cache-Control"] = LEADERBOARD_CACHE_CONTROL
    return {
        "leaderboard": [entry.model_dump() for entry in leaderboard],
        "cohorts": [cohort.model_dump(mode="json") for cohort in cohorts],
        "updated_at": utcnow().isoformat() + "Z",
    }


@router.get("/decisions/recent")
async def get_recent(
    response: Response,
    limit: Optional[str] = Query(None, description=f"Max rows, default {DECISIONS_DEFAULT_LIMIT}"),
    session: AsyncSession = Depends(get_db_session),
):
    row_limit = parse_int_param(limit, DECISIONS_DEFAULT_LIMIT, DECISIONS_MAX_LIMIT)
    try:
        decisions = await get_recent_decisions(session, limit=row_limit)
    except Exception as e:
        logger.error("Failed to load recent decisions", error=str(e))
        raise HTTPException(status_code=500, detail=safe_error_message(e))

    response.headers["Cache-Control"] = DECISIONS_CACHE_CONTROL
    return {
        "decisions": [decision.model_dump(mode="json") for decision in decisions],
        "updated_at": utcnow().isoformat() + "Z",
    }
