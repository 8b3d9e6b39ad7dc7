import logging
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Get the directory where this config file is located.
_BACKEND_DIR = Path(__file__).parent.resolve()


def _detect_project_root(backend_dir: Path) -> Path:
    """Resolve project root from the backend directory in the repo layout."""
    if (backend_dir.parent / "pyproject.toml").exists():
        return backend_dir.parent.resolve()
    return backend_dir.resolve()


_PROJECT_ROOT = _detect_project_root(_BACKEND_DIR)
_DEFAULT_DB_PATH = (_PROJECT_ROOT / "data" / "forecaster.db").resolve()
_SQLITE_ASYNC_PREFIX = "sqlite+aiosqlite:///"
_SQLITE_SYNC_PREFIX = "sqlite:///"
_LOGGER = logging.getLogger(__name__)

# Secrets the deployment cannot operate without. Checked by /api/health.
REQUIRED_SECRETS = ("OPENROUTER_API_KEY", "CRON_SECRET", "ADMIN_PASSWORD")


def secret_is_set(value: object) -> bool:
    """Blank and whitespace-only secrets count as unset everywhere."""
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="ignore")
    return bool(str(value or "").strip())


class Settings(BaseSettings):
    # Runtime
    ENVIRONMENT: str = "development"  # development | staging | production
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    CORS_ORIGINS: list[str] = ["*"]

    # Database - canonical path under project-root data directory
    DATABASE_URL: str = f"sqlite+aiosqlite:///{_DEFAULT_DB_PATH}"

    # Polymarket Gamma API
    GAMMA_API_URL: str = "https://gamma-api.polymarket.com"
    API_TIMEOUT_SECONDS: int = 30
    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_BASE_DELAY: float = 1.0

    # Market sync
    TOP_MARKETS_COUNT: int = 100  # Ranked by volume, fetched per sync run

    # Secrets
    ADMIN_PASSWORD: str = ""
    SESSION_SECRET: Optional[str] = None  # Falls back to ADMIN_PASSWORD
    CRON_SECRET: str = ""
    OPENROUTER_API_KEY: str = ""

    # Rate limiting
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: int = 300  # Drop expired windows every 5 minutes

    # Database Maintenance
    LOG_RETENTION_DAYS: int = 90  # Delete system logs older than X days
    LOG_RETENTION_MIN_ROWS: int = 10000  # ...but always keep the newest X rows
    AUTO_CLEANUP_ENABLED: bool = False  # Cron normally drives maintenance
    CLEANUP_INTERVAL_HOURS: int = 168  # Weekly when run in-process

    @field_validator("GAMMA_API_URL", mode="before")
    @classmethod
    def _normalize_url_field(cls, value: object) -> object:
        """Trim accidental quotes/whitespace from URL env vars."""
        if value is None:
            return value
        text = str(value).strip().strip('"').strip("'")
        if not text:
            return text
        return text.rstrip("/")

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: object) -> object:
        """Resolve relative SQLite paths against the project root."""
        if value is None:
            return value

        text = str(value).strip().strip('"').strip("'")
        if not text:
            return text

        for prefix in (_SQLITE_ASYNC_PREFIX, _SQLITE_SYNC_PREFIX):
            if not text.startswith(prefix):
                continue
            path_part = text[len(prefix) :]
            if not path_part:
                return text
            if path_part in {":memory:", "/:memory:"}:
                return f"{prefix}:memory:"
            absolute = (
                Path(path_part).resolve()
                if path_part.startswith("/")
                else (_PROJECT_ROOT / path_part).resolve()
            )
            try:
                absolute.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                _LOGGER.warning(
                    "Could not create SQLite data directory",
                    extra={"path": str(absolute.parent), "error": str(exc)},
                )
            return f"{prefix}{absolute}"

        return text

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "development"

    @property
    def session_secret(self) -> str:
        """Key used to sign admin session tokens."""
        for candidate in (self.SESSION_SECRET, self.ADMIN_PASSWORD):
            if secret_is_set(candidate):
                return candidate
        return ""

    def missing_required_secrets(self) -> list[str]:
        return [name for name in REQUIRED_SECRETS if not secret_is_set(getattr(self, name, ""))]

    class Config:
        # Load project-root .env first (common workflow), then backend/.env
        # as an override if present.
        env_file = (
            str(_PROJECT_ROOT / ".env"),
            str(_BACKEND_DIR / ".env"),
        )
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
