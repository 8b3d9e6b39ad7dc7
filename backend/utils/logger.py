"""
Structured process logging.

Every record is one JSON line. Keyword arguments passed to a ``ContextLogger``
call land under ``data``; values under credential-like keys are masked so a
stray ``password=`` or ``authorization=`` never reaches the log stream.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from utils.utcnow import utcnow

REDACTED = "[redacted]"
_SENSITIVE_KEYS = ("password", "secret", "token", "authorization", "cookie")
_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine", "alembic.runtime.migration")


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_KEYS)


def redact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: REDACTED if _is_sensitive(key) else value for key, value in data.items()}


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        data = getattr(record, "extra_data", None)
        if data:
            log_data["data"] = data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ContextLogger:
    """Thin wrapper that turns keyword arguments into structured fields."""

    def __init__(self, name: str, context: Optional[dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self.logger.name

    def with_context(self, **fields: Any) -> "ContextLogger":
        """Child logger that stamps ``fields`` on every record"""
        return ContextLogger(self.logger.name, {**self._context, **fields})

    def _log(self, level: int, msg: str, exc_info: Any = None, **fields: Any):
        if not self.logger.isEnabledFor(level):
            return
        data = redact({**self._context, **fields})
        self.logger.log(
            level,
            msg,
            exc_info=exc_info,
            stacklevel=3,  # report the caller, not this wrapper
            extra={"extra_data": data or None},
        )

    def debug(self, msg: str, **fields: Any):
        self._log(logging.DEBUG, msg, **fields)

    def info(self, msg: str, **fields: Any):
        self._log(logging.INFO, msg, **fields)

    def warning(self, msg: str, **fields: Any):
        self._log(logging.WARNING, msg, **fields)

    def error(self, msg: str, **fields: Any):
        self._log(logging.ERROR, msg, **fields)


def setup_logging(level: str = "INFO", json_format: bool = True, log_file: Optional[str] = None):
    """Install stdout (and optionally file) handlers on the root logger."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(name)


# Pre-configured loggers
api_logger = get_logger("api")
auth_logger = get_logger("auth")
polymarket_logger = get_logger("polymarket")
sync_logger = get_logger("market_sync")
