from typing import Optional

from fastapi import HTTPException
from pydantic import BaseModel


def parse_int_param(raw: Optional[str], default: int, maximum: int) -> int:
    """Lenient positive-int query param: bad or < 1 gives default, clamps to maximum."""
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    return min(value, maximum)


def severity_filter(raw: Optional[str]) -> Optional[str]:
    """``None``/``"all"`` mean no filter; anything else filters literally."""
    if raw is None:
        return None
    value = raw.strip().lower()
    if not value or value == "all":
        return None
    return value


class LoginRequest(BaseModel):
    """Admin login body. ``password`` is optional so a missing field maps to 400."""

    password: Optional[str] = None


def require_field(value: object, name: str) -> object:
    """Raise 400 naming the field when a required value is empty."""
    if value is None or (isinstance(value, str) and not value):
        raise HTTPException(status_code=400, detail=f"{name} required")
    return value
