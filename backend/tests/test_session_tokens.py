import base64
import hashlib
import hmac
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from config import settings  # noqa: E402
from services import auth  # noqa: E402
from services.auth import (  # noqa: E402
    ADMIN_ROLE,
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE_MS,
    issue_session_token,
    validate_session_token,
)

SECRET = "correct horse battery staple"
T0 = 1_760_000_000_000


def _forge(payload: str) -> str:
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def test_issue_token_layout():
    token = issue_session_token(ADMIN_ROLE, SECRET, now_ms=T0)
    decoded = base64.b64decode(token).decode("utf-8")
    role, issued_at, signature = decoded.split(":")

    assert role == "admin"
    assert issued_at == str(T0)
    assert signature == hmac.new(SECRET.encode(), f"admin:{T0}".encode(), hashlib.sha256).hexdigest()


def test_token_valid_until_max_age():
    token = issue_session_token(ADMIN_ROLE, SECRET, now_ms=T0)

    assert validate_session_token(token, SECRET, now_ms=T0) is True
    assert validate_session_token(token, SECRET, now_ms=T0 + SESSION_MAX_AGE_MS) is True
    assert validate_session_token(token, SECRET, now_ms=T0 + SESSION_MAX_AGE_MS + 1) is False


def test_token_rejected_under_other_secret():
    token = issue_session_token(ADMIN_ROLE, SECRET, now_ms=T0)
    assert validate_session_token(token, "a different secret", now_ms=T0) is False


def test_token_with_wrong_role_rejected_even_if_signed():
    token = issue_session_token("viewer", SECRET, now_ms=T0)
    assert validate_session_token(token, SECRET, now_ms=T0) is False


@pytest.mark.parametrize(
    "token",
    [
        "",
        None,
        "%%%not-base64%%%",
        _forge("admin:123"),
        _forge("admin:123:abc:extra"),
        _forge("admin:not-a-number:abc"),
        base64.b64encode(b"\xff\xfe\xfd").decode("ascii"),
    ],
)
def test_malformed_tokens_fail_closed(token):
    assert validate_session_token(token, SECRET, now_ms=T0) is False


def test_tampered_timestamp_fails_signature_check():
    token = issue_session_token(ADMIN_ROLE, SECRET, now_ms=T0)
    role, _, signature = base64.b64decode(token).decode("utf-8").split(":")
    tampered = _forge(f"{role}:{T0 + 1}:{signature}")
    assert validate_session_token(tampered, SECRET, now_ms=T0) is False


def test_empty_secret_never_validates():
    token = issue_session_token(ADMIN_ROLE, "", now_ms=T0)
    assert validate_session_token(token, "", now_ms=T0) is False


def test_is_authenticated_reads_cookie(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", SECRET)
    monkeypatch.setattr(settings, "SESSION_SECRET", None)
    token = issue_session_token(ADMIN_ROLE, SECRET)

    assert auth.is_authenticated(SimpleNamespace(cookies={SESSION_COOKIE_NAME: token})) is True
    assert auth.is_authenticated(SimpleNamespace(cookies={})) is False
    assert auth.is_authenticated(SimpleNamespace(cookies={SESSION_COOKIE_NAME: "junk"})) is False


def test_session_secret_overrides_admin_password(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", SECRET)
    monkeypatch.setattr(settings, "SESSION_SECRET", "dedicated-signing-key")

    signed_with_password = issue_session_token(ADMIN_ROLE, SECRET)
    signed_with_secret = issue_session_token(ADMIN_ROLE, "dedicated-signing-key")

    assert auth.is_authenticated(SimpleNamespace(cookies={SESSION_COOKIE_NAME: signed_with_password})) is False
    assert auth.is_authenticated(SimpleNamespace(cookies={SESSION_COOKIE_NAME: signed_with_secret})) is True


@pytest.mark.asyncio
async def test_require_admin_raises_401(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", SECRET)
    request = SimpleNamespace(cookies={}, url=SimpleNamespace(path="/api/admin/stats"))

    with pytest.raises(HTTPException) as excinfo:
        await auth.require_admin(request)

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Unauthorized"
