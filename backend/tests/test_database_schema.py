import sys
from pathlib import Path

import pytest
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import models.database as database

EXPECTED_TABLES = {
    "models",
    "cohorts",
    "agents",
    "markets",
    "positions",
    "decisions",
    "brier_scores",
    "system_logs",
}


def _repo_head_revision() -> str:
    cfg = Config(str(BACKEND_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    script = ScriptDirectory.from_config(cfg)
    return script.get_current_head()


@pytest.fixture
def temp_engine(tmp_path, monkeypatch):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'schema.db'}")
    session_factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    monkeypatch.setattr(database, "async_engine", engine)
    monkeypatch.setattr(database, "AsyncSessionLocal", session_factory)
    return engine


async def _table_names(engine) -> set[str]:
    async with engine.begin() as conn:
        rows = await conn.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))
        return {row[0] for row in rows.fetchall()}


@pytest.mark.asyncio
async def test_init_database_creates_schema_and_revision(temp_engine):
    await database.init_database()

    assert EXPECTED_TABLES <= await _table_names(temp_engine)

    async with temp_engine.begin() as conn:
        revision_row = await conn.execute(text("SELECT version_num FROM alembic_version"))
        assert revision_row.scalar_one() == _repo_head_revision()

        market_columns = await conn.execute(text("PRAGMA table_info(markets)"))
        column_names = {row[1] for row in market_columns.fetchall()}
        assert {"polymarket_id", "current_prices", "resolution_outcome", "resolved_at"} <= column_names

        agent_indexes = await conn.execute(text("PRAGMA index_list(agents)"))
        # primary key plus the (cohort_id, model_id) constraint
        assert sum(row[2] for row in agent_indexes.fetchall()) >= 2

    await temp_engine.dispose()


@pytest.mark.asyncio
async def test_init_database_is_idempotent(temp_engine):
    await database.init_database()

    async with temp_engine.begin() as conn:
        await conn.execute(
            text(
                "INSERT INTO system_logs (event_type, event_data, severity, created_at) "
                "VALUES ('market_sync_complete', '{}', 'info', '2026-10-19 00:00:00')"
            )
        )

    await database.init_database()

    async with temp_engine.begin() as conn:
        count = await conn.execute(text("SELECT COUNT(*) FROM system_logs"))
        assert count.scalar_one() == 1
        revisions = await conn.execute(text("SELECT COUNT(*) FROM alembic_version"))
        assert revisions.scalar_one() == 1

    await temp_engine.dispose()


def test_single_migration_head():
    cfg = Config(str(BACKEND_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    assert len(ScriptDirectory.from_config(cfg).get_heads()) == 1
