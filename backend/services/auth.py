"""
Admin session tokens.

A token is ``base64("{role}:{issued_at_ms}:{hex hmac-sha256}")`` where the MAC
covers ``"{role}:{issued_at_ms}"``. Tokens are stateless: there is no server
side revocation, they simply expire after seven days.
"""

import base64
import binascii
import hashlib
import hmac
from typing import Optional

from fastapi import HTTPException, Request, Response

from config import settings
from utils.logger import auth_logger as logger
from utils.security import constant_time_compare
from utils.utcnow import now_ms as _now_ms

ADMIN_ROLE = "admin"
SESSION_COOKIE_NAME = "forecaster_admin"
SESSION_MAX_AGE_SECONDS = 7 * 24 * 60 * 60
SESSION_MAX_AGE_MS = SESSION_MAX_AGE_SECONDS * 1000


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_session_token(role: str, secret: str, now_ms: Optional[int] = None) -> str:
    issued_at = _now_ms() if now_ms is None else int(now_ms)
    payload = f"{role}:{issued_at}"
    signature = _sign(payload, secret)
    return base64.b64encode(f"{payload}:{signature}".encode("utf-8")).decode("ascii")


def validate_session_token(token: Optional[str], secret: str, now_ms: Optional[int] = None) -> bool:
    """True only for a well-formed, unexpired, correctly signed admin token."""
    if not token or not secret:
        return False

    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return False

    parts = decoded.split(":")
    if len(parts) != 3:
        return False
    role, issued_raw, signature = parts

    if role != ADMIN_ROLE:
        return False

    try:
        issued_at = int(issued_raw)
    except ValueError:
        return False

    now = _now_ms() if now_ms is None else int(now_ms)
    if now - issued_at > SESSION_MAX_AGE_MS:
        return False

    expected = _sign(f"{role}:{issued_raw}", secret)
    return constant_time_compare(signature, expected)


def is_authenticated(request: Request) -> bool:
    return validate_session_token(request.cookies.get(SESSION_COOKIE_NAME), settings.session_secret)


async def require_admin(request: Request) -> None:
    """FastAPI dependency guarding admin routes"""
    if not is_authenticated(request):
        logger.debug("Rejected admin request without valid session", path=request.url.path)
        raise HTTPException(status_code=401, detail="Unauthorized")


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )
