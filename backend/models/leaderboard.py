from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class LeaderboardEntry(BaseModel):
    """Aggregate standing of one model across every cohort"""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    display_name: str
    provider: str
    color: Optional[str] = None
    total_pnl: float = 0.0
    total_pnl_percent: float = 0.0
    avg_brier_score: Optional[float] = None  # None until a bet resolves
    num_cohorts: int = 0
    num_resolved_bets: int = 0
    win_rate: Optional[float] = None  # None until a bet resolves


class CohortSummary(BaseModel):
    id: str
    cohort_number: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: str
    methodology_version: str
    num_agents: int = 0
    total_markets_traded: int = 0


class RecentDecision(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str
    agent_id: str
    decision_week: int
    decision_timestamp: datetime
    action: str
    reasoning: Optional[str] = None
    model_id: str
    model_display_name: str
    model_color: Optional[str] = None
    cohort_number: int
