import sys
from pathlib import Path

import pytest
from sqlalchemy.dialects import postgresql, sqlite

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from models.market import MarketSnapshot  # noqa: E402
from services.market_store import build_market_upsert, get_market_by_polymarket_id, upsert_market  # noqa: E402

DIALECTS = {"sqlite": sqlite.dialect(), "postgresql": postgresql.dialect()}


def _snapshot(**overrides) -> MarketSnapshot:
    fields = {
        "polymarket_id": "pm-1",
        "question": "Will it rain?",
        "outcomes": ["Yes", "No"],
        "current_prices": {"Yes": 0.4, "No": 0.6},
        "current_price": 0.4,
    }
    fields.update(overrides)
    return MarketSnapshot(**fields)


@pytest.mark.parametrize("dialect_name", sorted(DIALECTS))
def test_upsert_compiles_for_each_dialect(dialect_name):
    stmt = build_market_upsert(_snapshot(), dialect_name)

    sql = str(stmt.compile(dialect=DIALECTS[dialect_name]))

    assert sql.startswith("INSERT INTO markets")
    assert "ON CONFLICT (polymarket_id) DO UPDATE" in sql
    assert "question = excluded.question" in sql
    assert "resolution_outcome = excluded.resolution_outcome" not in sql


@pytest.mark.parametrize("dialect_name", sorted(DIALECTS))
def test_resolved_upsert_keeps_first_resolution_time(dialect_name):
    stmt = build_market_upsert(_snapshot(status="resolved", resolution_outcome="Yes"), dialect_name)

    sql = str(stmt.compile(dialect=DIALECTS[dialect_name]))

    assert "resolution_outcome = excluded.resolution_outcome" in sql
    assert "coalesce(" in sql
    assert "excluded.resolved_at" in sql


def test_unsupported_dialect_is_rejected():
    with pytest.raises(ValueError, match="mysql"):
        build_market_upsert(_snapshot(), "mysql")


@pytest.mark.asyncio
async def test_upsert_uses_session_dialect(db_session):
    assert db_session.get_bind().dialect.name == "sqlite"

    await upsert_market(db_session, _snapshot())
    await upsert_market(db_session, _snapshot(question="Will it snow?"))
    await db_session.commit()

    market = await get_market_by_polymarket_id(db_session, "pm-1")
    assert market.question == "Will it snow?"
