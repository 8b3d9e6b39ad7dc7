"""
Retry with exponential backoff for outbound HTTP calls.

Only transport failures and throttling/5xx statuses are retried. Anything
else (bad payloads, 4xx) surfaces on the first attempt.
"""

import asyncio
import random
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Optional, Tuple, Type

import httpx

from utils.logger import get_logger

logger = get_logger("retry")

TRANSIENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    ConnectionError,
    asyncio.TimeoutError,
)
TRANSIENT_STATUS_CODES: Tuple[int, ...] = (429, 500, 502, 503, 504)


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: bool = True

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        """Built per call so test overrides of ``settings`` apply immediately."""
        from config import settings

        return cls(
            max_attempts=max(1, int(settings.MAX_RETRY_ATTEMPTS)),
            base_delay=float(settings.RETRY_BASE_DELAY),
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1`` (0-based attempt)."""
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay


def is_transient(error: Exception) -> bool:
    if isinstance(error, TRANSIENT_EXCEPTIONS):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in TRANSIENT_STATUS_CODES
    return False


def _retry_after_seconds(error: Exception) -> Optional[float]:
    if not isinstance(error, httpx.HTTPStatusError) or error.response.status_code != 429:
        return None
    raw = error.response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def with_retry(config_factory: Callable[[], RetryConfig] = RetryConfig):
    """Retry an async callable on transient errors, re-raising the last one."""

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            config = config_factory()
            for attempt in range(config.max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    final = attempt >= config.max_attempts - 1
                    if not is_transient(e) or final:
                        if final and is_transient(e):
                            logger.error(
                                "All retry attempts exhausted",
                                function=func.__name__,
                                attempts=config.max_attempts,
                                error=str(e),
                            )
                        raise

                    delay = max(config.delay_for(attempt), _retry_after_seconds(e) or 0.0)
                    logger.warning(
                        "Retrying after transient error",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_attempts=config.max_attempts,
                        delay=round(delay, 3),
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
