from sqlalchemy import func, select, text

from config import settings
from models.database import Agent, AsyncSessionLocal, Position
from utils.logger import get_logger
from utils.utcnow import utcnow

logger = get_logger("health")


async def check_database(session_factory=AsyncSessionLocal) -> dict:
    try:
        async with session_factory() as session:
            value = (await session.execute(text("SELECT 1"))).scalar()
        if value == 1:
            return {"status": "ok"}
        return {"status": "error", "message": "Database query failed"}
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return {"status": "error", "message": str(e) or "Database connection failed"}


def check_environment() -> dict:
    missing = settings.missing_required_secrets()
    if missing:
        return {"status": "error", "message": f"Missing: {', '.join(missing)}"}
    return {"status": "ok"}


async def check_data_integrity(session_factory=AsyncSessionLocal) -> dict:
    """Positions whose agent row no longer exists"""
    try:
        async with session_factory() as session:
            orphaned = (
                await session.execute(
                    select(func.count(Position.id))
                    .select_from(Position)
                    .outerjoin(Agent, Agent.id == Position.agent_id)
                    .where(Agent.id.is_(None))
                )
            ).scalar() or 0
        if orphaned:
            return {"status": "error", "message": f"{orphaned} orphaned positions found"}
        return {"status": "ok"}
    except Exception as e:
        logger.error("Integrity health check failed", error=str(e))
        return {"status": "error", "message": str(e) or "Integrity check failed"}


async def run_health_checks(session_factory=AsyncSessionLocal) -> dict:
    checks = {
        "database": await check_database(session_factory),
        "environment": check_environment(),
        "data_integrity": await check_data_integrity(session_factory),
    }
    healthy = all(check["status"] == "ok" for check in checks.values())
    return {
        "status": "ok" if healthy else "error",
        "timestamp": utcnow().isoformat() + "Z",
        "checks": checks,
    }
