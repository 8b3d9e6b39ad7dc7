from pydantic import BaseModel
from typing import Optional
from datetime import datetime, timezone
import json

# A closed market whose leading outcome trades at or above this has settled.
RESOLVED_PRICE_THRESHOLD = 0.99


def _parse_maybe_json_list(raw: object) -> list[object]:
    """Accept list values directly or parse JSON-encoded list strings."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        try:
            parsed = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            return []
        if isinstance(parsed, list):
            return parsed
    return []


def _parse_float(raw: object) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def _parse_gamma_datetime(raw: object) -> Optional[datetime]:
    """ISO-8601 (``Z`` suffix allowed) to naive UTC."""
    if not raw or not isinstance(raw, str):
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _label(raw: object) -> Optional[str]:
    if isinstance(raw, dict):
        value = raw.get("label") or raw.get("name")
        return str(value) if value else None
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return None


class MarketSnapshot(BaseModel):
    """One market as reported by the Gamma API at fetch time"""

    polymarket_id: str
    question: str = ""
    slug: Optional[str] = None
    event_slug: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    market_type: str = "binary"
    outcomes: list[str] = []
    current_prices: dict[str, float] = {}
    current_price: Optional[float] = None
    volume: Optional[float] = None
    liquidity: Optional[float] = None
    close_date: Optional[datetime] = None
    status: str = "active"  # active, closed, resolved
    resolution_outcome: Optional[str] = None

    @classmethod
    def from_gamma_response(cls, data: dict) -> "MarketSnapshot":
        """Parse market from Gamma API response"""
        outcomes = [str(o) for o in _parse_maybe_json_list(data.get("outcomes")) if o is not None]

        prices: list[float] = []
        for price in _parse_maybe_json_list(data.get("outcomePrices", data.get("outcome_prices"))):
            value = _parse_float(price)
            if value is not None:
                prices.append(value)

        if not outcomes and len(prices) == 2:
            outcomes = ["Yes", "No"]

        current_prices = {
            outcome: prices[i] for i, outcome in enumerate(outcomes) if i < len(prices)
        }

        # Parent event slug lives on the nested events array when present
        event_slug = None
        events = data.get("events")
        if isinstance(events, list) and events and isinstance(events[0], dict):
            event_slug = events[0].get("slug") or None
        if not event_slug:
            event_slug = data.get("eventSlug") or data.get("event_slug") or None

        category = _label(data.get("category"))
        if category is None:
            tags = data.get("tags")
            if isinstance(tags, list) and tags:
                category = _label(tags[0])

        status = "active"
        resolution_outcome = None
        if data.get("closed"):
            status = "closed"
            for outcome, price in current_prices.items():
                if price >= RESOLVED_PRICE_THRESHOLD:
                    status = "resolved"
                    resolution_outcome = outcome
                    break

        return cls(
            polymarket_id=str(data.get("id", "")).strip(),
            question=data.get("question") or "",
            slug=data.get("slug") or None,
            event_slug=event_slug,
            description=data.get("description") or None,
            category=category,
            market_type="binary" if len(outcomes) <= 2 else "multi_outcome",
            outcomes=outcomes,
            current_prices=current_prices,
            current_price=prices[0] if prices else None,
            volume=_parse_float(data.get("volume") or data.get("volumeNum")),
            liquidity=_parse_float(data.get("liquidity") or data.get("liquidityNum")),
            close_date=_parse_gamma_datetime(data.get("endDate") or data.get("end_date")),
            status=status,
            resolution_outcome=resolution_outcome,
        )
