"""
Market reconciliation.

Pulls the current top markets from Polymarket and folds them into the local
``markets`` table, counting which were new and which were refreshed. One bad
record never aborts the batch; a failed fetch aborts the whole run.
"""

import asyncio
import time
from typing import Optional

from pydantic import BaseModel

from config import settings
from models.database import AsyncSessionLocal
from services.market_store import get_market_by_polymarket_id, upsert_market
from services.polymarket import PolymarketClient, polymarket_client
from services.system_log import log_system_event
from utils.logger import sync_logger as logger
from utils.utcnow import elapsed_ms


class SyncMarketsResult(BaseModel):
    success: bool
    markets_added: int = 0
    markets_updated: int = 0
    errors: list[str] = []
    duration_ms: int = 0


class MarketSyncService:
    def __init__(self, client: Optional[PolymarketClient] = None, session_factory=None):
        self._client = client or polymarket_client
        self._session_factory = session_factory or AsyncSessionLocal
        self._lock = asyncio.Lock()

    async def _record_event(self, event_type: str, data: dict, severity: str = "info") -> None:
        async with self._session_factory() as session:
            await log_system_event(event_type, data, severity, session=session)

    async def sync(self, limit: Optional[int] = None) -> SyncMarketsResult:
        """Run one reconciliation pass. Overlapping calls in this process queue up."""
        async with self._lock:
            return await self._sync(limit or settings.TOP_MARKETS_COUNT)

    async def _sync(self, limit: int) -> SyncMarketsResult:
        start = time.perf_counter()
        added = 0
        updated = 0
        errors: list[str] = []

        log = logger.with_context(limit=limit)
        log.info("Starting market sync")

        try:
            markets = await self._client.fetch_top_markets(limit)
        except Exception as e:
            log.error("Market sync fetch failed", error=str(e), duration_ms=elapsed_ms(start))
            await self._record_event("market_sync_error", {"error": str(e)}, "error")
            raise

        for market in markets:
            try:
                async with self._session_factory() as session:
                    existing = await get_market_by_polymarket_id(session, market.polymarket_id)
                    await upsert_market(session, market)
                    await session.commit()
                if existing is not None:
                    updated += 1
                else:
                    added += 1
            except Exception as e:
                log.warning("Failed to store market", polymarket_id=market.polymarket_id, error=str(e))
                errors.append(f"{market.polymarket_id}: {e}")

        duration = elapsed_ms(start)
        await self._record_event(
            "market_sync_complete",
            {
                "markets_added": added,
                "markets_updated": updated,
                "errors": len(errors),
                "duration_ms": duration,
            },
        )
        log.info(
            "Market sync complete",
            fetched=len(markets),
            added=added,
            updated=updated,
            errors=len(errors),
            duration_ms=duration,
        )

        return SyncMarketsResult(
            success=True,
            markets_added=added,
            markets_updated=updated,
            errors=errors,
            duration_ms=duration,
        )


# Singleton instance
market_sync_service = MarketSyncService()
