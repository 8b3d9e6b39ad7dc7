"""
Database Maintenance Service

Prunes old system logs and reports table counters for the admin dashboard.
"""

import asyncio
import time
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, func, select

from config import settings
from models.database import Agent, AsyncSessionLocal, Cohort, Decision, MarketRecord, SystemLog
from services.system_log import log_system_event
from utils.logger import get_logger
from utils.utcnow import elapsed_ms, utcnow

logger = get_logger("maintenance")


class MaintenanceService:
    """Database maintenance and cleanup service"""

    DEFAULT_LOG_RETENTION_DAYS = 90
    DEFAULT_MIN_RETAINED_LOGS = 10000

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or AsyncSessionLocal
        self._running = False

    async def get_database_stats(self) -> dict:
        """Counters shown on the admin dashboard"""
        async with self._session_factory() as session:
            active_cohorts = await session.execute(
                select(func.count(Cohort.id)).where(Cohort.status == "active")
            )
            total_agents = await session.execute(select(func.count(Agent.id)))
            markets_tracked = await session.execute(select(func.count(MarketRecord.id)))
            total_cost = await session.execute(select(func.coalesce(func.sum(Decision.api_cost_usd), 0)))
            system_logs = await session.execute(select(func.count(SystemLog.id)))

            return {
                "active_cohorts": active_cohorts.scalar() or 0,
                "total_agents": total_agents.scalar() or 0,
                "markets_tracked": markets_tracked.scalar() or 0,
                "total_api_cost": float(total_cost.scalar() or 0),
                "system_logs": system_logs.scalar() or 0,
            }

    async def cleanup_old_logs(
        self,
        retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
        min_retained: int = DEFAULT_MIN_RETAINED_LOGS,
    ) -> int:
        """
        Delete system logs older than ``retention_days``.

        The newest ``min_retained`` rows always survive regardless of age, and
        nothing at all is deleted while the table holds ``min_retained`` rows
        or fewer.

        Returns:
            Number of rows deleted
        """
        cutoff_date = utcnow() - timedelta(days=retention_days)

        async with self._session_factory() as session:
            total = (await session.execute(select(func.count(SystemLog.id)))).scalar() or 0
            if total <= min_retained:
                return 0

            newest = (
                select(SystemLog.id)
                .order_by(SystemLog.created_at.desc(), SystemLog.id.desc())
                .limit(min_retained)
            )
            result = await session.execute(
                delete(SystemLog)
                .where(SystemLog.created_at < cutoff_date)
                .where(SystemLog.id.not_in(newest))
                .execution_options(synchronize_session=False)
            )
            await session.commit()

            deleted = result.rowcount or 0
            if deleted:
                logger.info(
                    "Cleaned up old system logs",
                    deleted=deleted,
                    retention_days=retention_days,
                    min_retained=min_retained,
                )
            return deleted

    async def run_maintenance(
        self,
        retention_days: Optional[int] = None,
        min_retained: Optional[int] = None,
    ) -> dict:
        """Run every maintenance task and record the outcome as a system event."""
        start = time.perf_counter()
        try:
            logs_deleted = await self.cleanup_old_logs(
                retention_days=retention_days if retention_days is not None else settings.LOG_RETENTION_DAYS,
                min_retained=min_retained if min_retained is not None else settings.LOG_RETENTION_MIN_ROWS,
            )
        except Exception as e:
            logger.error("Maintenance failed", error=str(e))
            async with self._session_factory() as session:
                await log_system_event("maintenance_error", {"error": str(e)}, "error", session=session)
            raise

        duration = elapsed_ms(start)
        async with self._session_factory() as session:
            await log_system_event(
                "maintenance_complete",
                {"logs_deleted": logs_deleted, "duration_ms": duration},
                session=session,
            )
        logger.info("Maintenance complete", logs_deleted=logs_deleted, duration_ms=duration)

        return {
            "logs_deleted": logs_deleted,
            "timestamp": utcnow().isoformat() + "Z",
            "duration_ms": duration,
        }

    async def start_background_cleanup(self, interval_hours: float = 168):
        """Run maintenance every ``interval_hours`` until ``stop()`` is called."""
        self._running = True

        logger.info("Starting background cleanup task", interval_hours=interval_hours)

        while self._running:
            try:
                await asyncio.sleep(interval_hours * 3600)

                if not self._running:
                    break

                logger.info("Running scheduled database cleanup")
                await self.run_maintenance()

            except asyncio.CancelledError:
                logger.info("Background cleanup task cancelled")
                break
            except Exception as e:
                logger.error("Background cleanup failed", error=str(e))

        logger.info("Background cleanup task stopped")

    def stop(self):
        """Stop the background cleanup task"""
        self._running = False


# Singleton instance
maintenance_service = MaintenanceService()
