# studyhall/utils/money.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from studyhall.core.errors import ValidationError

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
# Numeric(12, 2) holds at most 10 integer digits
MAX_AMOUNT = Decimal(10) ** 10


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def parse_money(value: Any, field: str) -> Decimal:
    """
    Boundary parser for monetary input (string or number).

    Missing / blank -> 0.00. Anything else that does not parse as a finite
    number is rejected instead of silently becoming zero.
    """
    if _blank(value):
        return ZERO
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount for {field}")
    try:
        d = Decimal(str(value).strip())
        if not d.is_finite() or abs(d) >= MAX_AMOUNT:
            raise ValidationError(f"Invalid amount for {field}")
        return d.quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount for {field}: {value!r}")


def coerce_amount(value: Any) -> float:
    """Read-side coercion: number or numeric string -> float, 0.0 on failure."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        f = float(value)
    except (TypeError, ValueError):
        return 0.0
    if f != f or f in (float("inf"), float("-inf")):
        return 0.0
    return f


def parse_int_id(value: Any, field: str) -> Optional[int]:
    """Blank -> None; digits (as int or string) -> int; anything else -> 400."""
    if _blank(value):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    s = str(value).strip()
    try:
        return int(s, 10)
    except ValueError:
        raise ValidationError(f"Invalid {field}: {value!r}")


def due_amount(total_fee: Decimal, discount: Decimal, amount_paid: Decimal) -> Decimal:
    return (total_fee - discount - amount_paid).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_float(d: Any) -> float:
    return float(d) if d is not None else 0.0
