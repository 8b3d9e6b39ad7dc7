"""Column types shared by the ORM models."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.types import Numeric, TypeDecorator


class PreciseFloat(TypeDecorator):
    """Balances, P&L, prices and API costs.

    Stored as NUMERIC so sums over many positions do not drift, but read and
    written as plain ``float`` by the services and response models.
    """

    impl = Numeric(24, 12, asdecimal=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect):
        if value is None or isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ValueError(f"Not a numeric amount: {value!r}") from exc

    def process_result_value(self, value: Any, dialect):
        return None if value is None else float(value)
