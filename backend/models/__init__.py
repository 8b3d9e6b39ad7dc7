from .market import MarketSnapshot
from .leaderboard import (
    LeaderboardEntry,
    CohortSummary,
    RecentDecision,
)

__all__ = [
    "MarketSnapshot",
    "LeaderboardEntry",
    "CohortSummary",
    "RecentDecision",
]
