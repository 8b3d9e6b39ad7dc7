"""
Durable system events (``system_logs`` table).

These are the audit trail shown on the admin dashboard, separate from process
logging. Writing an event must never break the caller.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.database import AsyncSessionLocal, SystemLog
from utils.logger import get_logger

logger = get_logger("system_log")


async def log_system_event(
    event_type: str,
    data: Optional[dict] = None,
    severity: str = "info",
    session: Optional[AsyncSession] = None,
) -> bool:
    """Persist one event. Returns ``False`` (and logs) if the write failed."""
    try:
        if session is not None:
            session.add(SystemLog(event_type=event_type, event_data=data or {}, severity=severity))
            await session.commit()
        else:
            async with AsyncSessionLocal() as own_session:
                own_session.add(SystemLog(event_type=event_type, event_data=data or {}, severity=severity))
                await own_session.commit()
        return True
    except Exception as e:
        logger.error("Failed to write system event", event_type=event_type, error=str(e))
        return False


async def list_system_logs(session: AsyncSession, severity: Optional[str] = None, limit: int = 100) -> list[dict]:
    """Newest first, optionally filtered to one severity"""
    query = select(SystemLog)
    if severity:
        query = query.where(SystemLog.severity == severity)
    query = query.order_by(SystemLog.created_at.desc(), SystemLog.id.desc()).limit(limit)

    rows = (await session.execute(query)).scalars().all()
    return [
        {
            "id": row.id,
            "event_type": row.event_type,
            "event_data": row.event_data,
            "severity": row.severity,
            "created_at": row.created_at.isoformat() if row.created_at else None,
        }
        for row in rows
    ]
