from .logger import setup_logging, get_logger, api_logger, auth_logger, polymarket_logger, sync_logger
from .retry import RetryConfig, with_retry
from .rate_limiter import (
    FixedWindowRateLimiter,
    InMemoryRateLimitStore,
    RateLimitPolicy,
    rate_limiter,
    LOGIN_POLICY,
    CRON_POLICY,
    ADMIN_POLICY,
)
from .security import constant_time_compare, safe_error_message
from .validation import parse_int_param, require_field, severity_filter

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "api_logger",
    "auth_logger",
    "polymarket_logger",
    "sync_logger",

    # Retry
    "RetryConfig",
    "with_retry",

    # Rate Limiter
    "FixedWindowRateLimiter",
    "InMemoryRateLimitStore",
    "RateLimitPolicy",
    "rate_limiter",
    "LOGIN_POLICY",
    "CRON_POLICY",
    "ADMIN_POLICY",

    # Security
    "constant_time_compare",
    "safe_error_message",

    # Validation
    "parse_int_param",
    "require_field",
    "severity_filter",
]
