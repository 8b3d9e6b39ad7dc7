from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from models import MarketSnapshot
from models.database import MarketRecord, _new_id
from utils.utcnow import utcnow

# Columns refreshed from Gamma on every sync. Resolution fields are only
# ever filled in, never cleared, by a later snapshot.
_REFRESHED_COLUMNS = (
    "slug",
    "event_slug",
    "question",
    "description",
    "category",
    "market_type",
    "outcomes",
    "close_date",
    "status",
    "current_price",
    "current_prices",
    "volume",
    "liquidity",
    "last_updated_at",
)

# Dialects with a native ON CONFLICT upsert
_INSERT_BY_DIALECT = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


async def get_market_by_polymarket_id(session: AsyncSession, polymarket_id: str) -> Optional[MarketRecord]:
    result = await session.execute(select(MarketRecord).where(MarketRecord.polymarket_id == polymarket_id))
    return result.scalar_one_or_none()


def build_market_upsert(snapshot: MarketSnapshot, dialect_name: str):
    """``INSERT ... ON CONFLICT (polymarket_id) DO UPDATE`` for one snapshot."""
    insert = _INSERT_BY_DIALECT.get(dialect_name)
    if insert is None:
        raise ValueError(f"Market upsert is not supported on {dialect_name!r}")

    now = utcnow()
    values = {
        "id": _new_id(),
        "polymarket_id": snapshot.polymarket_id,
        "slug": snapshot.slug,
        "event_slug": snapshot.event_slug,
        "question": snapshot.question,
        "description": snapshot.description,
        "category": snapshot.category,
        "market_type": snapshot.market_type,
        "outcomes": snapshot.outcomes,
        "close_date": snapshot.close_date,
        "status": snapshot.status,
        "current_price": snapshot.current_price,
        "current_prices": snapshot.current_prices,
        "volume": snapshot.volume,
        "liquidity": snapshot.liquidity,
        "resolution_outcome": snapshot.resolution_outcome,
        "resolved_at": now if snapshot.status == "resolved" else None,
        "last_updated_at": now,
        "created_at": now,
    }

    stmt = insert(MarketRecord).values(**values)
    excluded = stmt.excluded
    update_set = {column: getattr(excluded, column) for column in _REFRESHED_COLUMNS}
    if snapshot.status == "resolved":
        update_set["resolution_outcome"] = excluded.resolution_outcome
        # Keep the first resolution timestamp
        update_set["resolved_at"] = func.coalesce(MarketRecord.__table__.c.resolved_at, excluded.resolved_at)

    return stmt.on_conflict_do_update(index_elements=["polymarket_id"], set_=update_set)


async def upsert_market(session: AsyncSession, snapshot: MarketSnapshot) -> None:
    """Insert or refresh one market in a single statement.

    Concurrent writers for the same ``polymarket_id`` cannot create a
    duplicate; the last write wins.
    """
    dialect_name = session.get_bind().dialect.name
    await session.execute(build_market_upsert(snapshot, dialect_name))
