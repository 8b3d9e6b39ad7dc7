from .routes_admin import router as admin_router
from .routes_cron import router as cron_router
from .routes_leaderboard import router as leaderboard_router
from .routes_health import router as health_router
from .gatekeeper import rate_limit_gatekeeper

__all__ = [
    "admin_router",
    "cron_router",
    "leaderboard_router",
    "health_router",
    "rate_limit_gatekeeper",
]
