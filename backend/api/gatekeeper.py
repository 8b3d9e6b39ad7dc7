"""
Request gatekeeper.

HTTP middleware that throttles the sensitive route classes before any route
code runs. It does not authenticate; routes still check sessions/secrets.
"""

from typing import Mapping, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from utils.logger import api_logger as logger
from utils.rate_limiter import (
    ADMIN_POLICY,
    CRON_POLICY,
    LOGIN_POLICY,
    RateLimitPolicy,
    rate_limiter,
)

UNKNOWN_CLIENT = "unknown"

LOGIN_PATH = "/api/admin/login"
ADMIN_PREFIX = "/api/admin/"
CRON_PREFIX = "/api/cron/"


def resolve_client_identity(headers: Mapping[str, str]) -> str:
    """Client IP as reported by the fronting proxy.

    Unidentifiable clients all share the ``"unknown"`` bucket.
    """
    cf_ip = str(headers.get("cf-connecting-ip") or "").strip()
    if cf_ip:
        return cf_ip

    real_ip = str(headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    forwarded = str(headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        first = forwarded.split(",", 1)[0].strip()
        if first:
            return first

    return UNKNOWN_CLIENT


def classify_request(method: str, path: str) -> Optional[RateLimitPolicy]:
    method = method.upper()
    if path == LOGIN_PATH:
        # DELETE (logout) is not throttled
        return LOGIN_POLICY if method == "POST" else None
    if path.startswith(CRON_PREFIX):
        return CRON_POLICY if method == "POST" else None
    if path.startswith(ADMIN_PREFIX):
        return ADMIN_POLICY
    return None


def _rejection(policy: RateLimitPolicy) -> JSONResponse:
    if policy is LOGIN_POLICY:
        message = "Too many login attempts. Please try again later."
    else:
        message = "Too many requests. Please try again later."

    response = JSONResponse(status_code=429, content={"detail": message})
    response.headers["Retry-After"] = str(policy.window_seconds)
    if policy is LOGIN_POLICY:
        response.headers["X-RateLimit-Limit"] = str(policy.limit)
        response.headers["X-RateLimit-Remaining"] = "0"
    return response


async def rate_limit_gatekeeper(request: Request, call_next):
    policy = classify_request(request.method, request.url.path)
    if policy is None:
        return await call_next(request)

    identity = resolve_client_identity(request.headers)
    key = f"{identity}:{policy.name}"

    if not rate_limiter.hit(key, policy):
        logger.warning(
            "Rate limit exceeded",
            policy=policy.name,
            client=identity,
            path=request.url.path,
        )
        return _rejection(policy)

    response = await call_next(request)
    if policy is LOGIN_POLICY:
        response.headers["X-RateLimit-Limit"] = str(policy.limit)
        response.headers["X-RateLimit-Remaining"] = str(rate_limiter.remaining(key, policy.limit))
    return response
