from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    Text,
    JSON,
    ForeignKey,
    Index,
    UniqueConstraint,
    event,
)
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from contextlib import contextmanager
from pathlib import Path
import logging
import os
import uuid

from config import settings
from models.types import PreciseFloat as Float
from utils.utcnow import utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


# ==================== MODELS & COHORTS ====================


class ModelRecord(Base):
    """An AI model competing on the leaderboard"""

    __tablename__ = "models"

    id = Column(String, primary_key=True)
    display_name = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    color = Column(String, nullable=True)  # Chart colour, e.g. "#10a37f"
    openrouter_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    agents = relationship("Agent", back_populates="model")


class Cohort(Base):
    """A weekly competition cohort; every model gets one agent per cohort"""

    __tablename__ = "cohorts"

    id = Column(String, primary_key=True, default=_new_id)
    cohort_number = Column(Integer, nullable=False, unique=True)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)
    status = Column(String, nullable=False, default="active")  # active, completed
    methodology_version = Column(String, nullable=False, default="v1")
    initial_balance = Column(Float, nullable=False, default=10000.0)

    agents = relationship("Agent", back_populates="cohort")

    __table_args__ = (Index("idx_cohort_status", "status"),)


class Agent(Base):
    """One model's trading account inside one cohort"""

    __tablename__ = "agents"

    id = Column(String, primary_key=True, default=_new_id)
    cohort_id = Column(String, ForeignKey("cohorts.id"), nullable=False)
    model_id = Column(String, ForeignKey("models.id"), nullable=False)
    cash_balance = Column(Float, nullable=False, default=10000.0)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, default=utcnow)

    cohort = relationship("Cohort", back_populates="agents")
    model = relationship("ModelRecord", back_populates="agents")

    __table_args__ = (
        UniqueConstraint("cohort_id", "model_id", name="uq_agent_cohort_model"),
        Index("idx_agent_model", "model_id"),
    )


# ==================== MARKETS ====================


class MarketRecord(Base):
    """Local mirror of a Polymarket market, keyed by its Polymarket id"""

    __tablename__ = "markets"

    id = Column(String, primary_key=True, default=_new_id)
    polymarket_id = Column(String, nullable=False, unique=True)
    slug = Column(String, nullable=True)
    event_slug = Column(String, nullable=True)
    question = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True)
    market_type = Column(String, nullable=False, default="binary")
    outcomes = Column(JSON, nullable=True)
    close_date = Column(DateTime, nullable=True)
    status = Column(String, nullable=False, default="active")  # active, closed, resolved
    current_price = Column(Float, nullable=True)  # Price of the first outcome
    current_prices = Column(JSON, nullable=True)  # {outcome: price}
    volume = Column(Float, nullable=True)
    liquidity = Column(Float, nullable=True)
    resolution_outcome = Column(String, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    last_updated_at = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (Index("idx_market_status", "status"),)


# ==================== TRADING ====================


class Position(Base):
    """An agent's holding in one market side"""

    __tablename__ = "positions"

    id = Column(String, primary_key=True, default=_new_id)
    # Deliberately not a FK: /health reports rows whose agent has gone missing.
    agent_id = Column(String, nullable=False)
    market_id = Column(String, ForeignKey("markets.id"), nullable=False)
    side = Column(String, nullable=False)  # YES / NO or outcome name
    shares = Column(Float, nullable=False, default=0.0)
    avg_entry_price = Column(Float, nullable=False, default=0.0)
    total_cost = Column(Float, nullable=False, default=0.0)
    current_value = Column(Float, nullable=True)
    realized_pnl = Column(Float, nullable=False, default=0.0)
    unrealized_pnl = Column(Float, nullable=False, default=0.0)
    status = Column(String, nullable=False, default="open")  # open, closed, settled
    opened_at = Column(DateTime, default=utcnow)
    closed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_position_agent", "agent_id"),
        Index("idx_position_market", "market_id"),
        Index("idx_position_status", "status"),
    )


class Decision(Base):
    """A weekly trading decision made by an agent"""

    __tablename__ = "decisions"

    id = Column(String, primary_key=True, default=_new_id)
    agent_id = Column(String, ForeignKey("agents.id"), nullable=False)
    cohort_id = Column(String, ForeignKey("cohorts.id"), nullable=False)
    decision_week = Column(Integer, nullable=False)
    decision_timestamp = Column(DateTime, nullable=False, default=utcnow)
    action = Column(String, nullable=False)  # BET, SELL, HOLD, ERROR
    reasoning = Column(Text, nullable=True)
    api_cost_usd = Column(Float, nullable=True)

    __table_args__ = (Index("idx_decision_timestamp", "decision_timestamp"),)


class BrierScore(Base):
    """Stored forecast accuracy for one resolved bet"""

    __tablename__ = "brier_scores"

    id = Column(String, primary_key=True, default=_new_id)
    agent_id = Column(String, ForeignKey("agents.id"), nullable=False)
    market_id = Column(String, ForeignKey("markets.id"), nullable=False)
    forecast_probability = Column(Float, nullable=False)
    actual_outcome = Column(Float, nullable=False)
    brier_score = Column(Float, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (Index("idx_brier_agent", "agent_id"),)


# ==================== SYSTEM LOGS ====================


class SystemLog(Base):
    """Durable audit trail of security and pipeline events"""

    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String, nullable=False)
    event_data = Column(JSON, nullable=True)
    severity = Column(String, nullable=False, default="info")  # info, warning, error
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_system_log_created", "created_at"),
        Index("idx_system_log_severity", "severity"),
    )


# ==================== DATABASE SETUP ====================

_engine_kw: dict = {"echo": False}
if "sqlite" in settings.DATABASE_URL:
    _engine_kw["connect_args"] = {"timeout": 30}  # Wait up to 30s when DB is locked

async_engine = create_async_engine(settings.DATABASE_URL, **_engine_kw)


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """WAL mode and a busy timeout so cron writers and readers coexist."""
    if "sqlite" not in settings.DATABASE_URL:
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


event.listens_for(async_engine.sync_engine, "connect")(_set_sqlite_pragma)

AsyncSessionLocal = sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


def _run_alembic_upgrade(connection) -> None:
    from alembic import command
    from alembic.config import Config

    backend_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(backend_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(backend_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", str(connection.engine.url))
    alembic_cfg.attributes["connection"] = connection
    command.upgrade(alembic_cfg, "head")


@contextmanager
def _sqlite_migration_lock():
    """Serialize Alembic upgrades when several processes share one SQLite file."""
    if "sqlite" not in settings.DATABASE_URL or os.name != "posix":
        yield
        return

    import fcntl

    lock_path = Path(__file__).resolve().parents[1] / ".alembic.sqlite.lock"
    try:
        lock_file = lock_path.open("a", encoding="utf-8")
    except OSError:
        logger.warning("Cannot open migration lock file, proceeding without lock")
        yield
        return

    try:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
    finally:
        lock_file.close()


async def init_database():
    """Create or upgrade the schema to the latest Alembic revision."""
    with _sqlite_migration_lock():
        async with async_engine.begin() as conn:
            await conn.run_sync(_run_alembic_upgrade)


async def get_db_session() -> AsyncSession:
    """Get database session"""
    async with AsyncSessionLocal() as session:
        yield session
