"""Credential comparison and error-message helpers for the auth boundary."""

from __future__ import annotations

from typing import Union

from config import secret_is_set, settings

BytesLike = Union[str, bytes, bytearray]

GENERIC_ERROR_MESSAGE = "Internal server error"


def _as_bytes(value: BytesLike) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def constant_time_compare(a: BytesLike, b: BytesLike) -> bool:
    """Compare two secrets in time independent of where they differ.

    Length is not treated as secret: unequal lengths return ``False`` at once.
    Otherwise every byte pair is folded into one accumulator and the result is
    tested a single time at the end.
    """
    a_bytes = _as_bytes(a)
    b_bytes = _as_bytes(b)

    if len(a_bytes) != len(b_bytes):
        return False

    mismatch = 0
    for x, y in zip(a_bytes, b_bytes):
        mismatch |= x ^ y

    return mismatch == 0


def verify_admin_password(provided: BytesLike, expected: BytesLike) -> bool:
    """An unset admin password never matches."""
    if not secret_is_set(expected):
        return False
    return constant_time_compare(provided, expected)


def verify_cron_secret(provided: BytesLike, expected: BytesLike) -> bool:
    """An unset cron secret never matches."""
    if not secret_is_set(expected):
        return False
    return constant_time_compare(provided, expected)


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        return ""
    value = authorization.strip()
    if value[:7].lower() == "bearer ":
        return value[7:].strip()
    return value


def safe_error_message(error: BaseException) -> str:
    """Detailed message outside production, generic text in production."""
    if settings.is_production:
        return GENERIC_ERROR_MESSAGE
    message = str(error).strip()
    return message or type(error).__name__
