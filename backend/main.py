import asyncio
from contextlib import asynccontextmanager
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from api import admin_router, cron_router, leaderboard_router, health_router, rate_limit_gatekeeper
from models.database import init_database
from services.maintenance import maintenance_service
from utils.logger import setup_logging, get_logger
from utils.rate_limiter import rate_limiter
from utils.security import safe_error_message

# Setup logging
setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting Forecaster Arena backend...", environment=settings.ENVIRONMENT)

    missing = settings.missing_required_secrets()
    if missing:
        logger.warning("Required secrets are not configured", missing=missing)

    tasks: list[asyncio.Task] = []
    try:
        await init_database()
        logger.info("Database initialized")

        rate_limiter.start_sweeper(settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS)

        if settings.AUTO_CLEANUP_ENABLED:
            tasks.append(
                asyncio.create_task(
                    maintenance_service.start_background_cleanup(interval_hours=settings.CLEANUP_INTERVAL_HOURS)
                )
            )
            logger.info("Background database cleanup enabled", interval_hours=settings.CLEANUP_INTERVAL_HOURS)

        yield

    finally:
        logger.info("Shutting down...")
        maintenance_service.stop()
        await rate_limiter.stop_sweeper()

        for task in tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        from services.polymarket import polymarket_client

        await polymarket_client.close()
        logger.info("Shutdown complete")


app = FastAPI(
    title="Forecaster Arena",
    description="Leaderboard backend for AI models trading Polymarket prediction markets",
    version="1.0.0",
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        traceback=traceback.format_exc(),
    )
    return JSONResponse(status_code=500, content={"detail": safe_error_message(exc)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400, naming the first offending field."""
    field = "body"
    errors = exc.errors()
    if errors:
        # Integer parts are list indexes or, for unparseable JSON, a character offset
        location = [
            str(part)
            for part in errors[0].get("loc", ())
            if not isinstance(part, int) and part not in ("body", "query", "header")
        ]
        if location:
            field = ".".join(location)
    return JSONResponse(status_code=400, content={"detail": f"Missing or invalid field: {field}"})


# Rate limiting runs before routing
app.middleware("http")(rate_limit_gatekeeper)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining"],
)


# API routes
app.include_router(admin_router, prefix="/api")
app.include_router(cron_router, prefix="/api")
app.include_router(leaderboard_router, prefix="/api")
app.include_router(health_router, prefix="/api")


if __name__ == "__main__":
    import os
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=settings.is_development,
        # Single worker: the rate limiter keeps its windows in process memory.
        timeout_keep_alive=30,
    )
