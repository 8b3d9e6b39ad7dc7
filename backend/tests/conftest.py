"""Shared fixtures for the forecaster backend tests."""

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import json

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from models.database import Base
from utils.rate_limiter import rate_limiter


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory bound to a throwaway SQLite file with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'forecaster-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """The limiter is process-global; start every test with empty windows."""
    rate_limiter.store.clear()
    yield
    rate_limiter.store.clear()


# ---------------------------------------------------------------------------
# Raw API response fixtures (mimicking Gamma API payloads)
# ---------------------------------------------------------------------------


@pytest.fixture
def raw_market_response():
    """A realistic Gamma-API /markets response dict."""
    return {
        "id": "123456",
        "conditionId": "0xabc123",
        "question": "Will BTC exceed $100k by end of 2026?",
        "slug": "will-btc-exceed-100k-2026",
        "description": "Resolves YES if any major exchange prints above $100,000.",
        "category": "Crypto",
        "outcomes": json.dumps(["Yes", "No"]),
        "outcomePrices": json.dumps(["0.65", "0.35"]),
        "active": True,
        "closed": False,
        "volume": "12345.67",
        "liquidity": "5000.00",
        "endDate": "2026-12-31T12:00:00Z",
        "events": [{"slug": "btc-price-2026"}],
    }


@pytest.fixture
def make_raw_market():
    """Factory for minimal Gamma rows keyed by id."""

    def _make(polymarket_id: str, **overrides) -> dict:
        raw = {
            "id": polymarket_id,
            "question": f"Market {polymarket_id}?",
            "slug": f"market-{polymarket_id}",
            "outcomes": json.dumps(["Yes", "No"]),
            "outcomePrices": json.dumps(["0.5", "0.5"]),
            "active": True,
            "closed": False,
            "volume": "1000",
            "liquidity": "250",
        }
        raw.update(overrides)
        return raw

    return _make
