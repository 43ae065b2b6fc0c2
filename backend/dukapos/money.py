# Overview: Decimal helpers for every monetary value in the system.

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Commas only as thousands separators: "1,250.50", never "1,5"
_GROUPED = re.compile(r"^[-+]?\d{1,3}(,\d{3})+(\.\d*)?$")


def to_decimal(value) -> Decimal:
    """
    Coerce value (Decimal, int, str, float) to an exact Decimal.

    Floats go through str() to avoid binary float artifacts
    (0.1 -> Decimal("0.1"), not 0.1000000000000000055...).
    Raises ValueError on anything unparseable; money is never guessed.
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a monetary amount")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int):
        d = Decimal(value)
    elif isinstance(value, float):
        d = Decimal(str(value))
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            raise ValueError("empty monetary amount")
        if "," in s:
            if not _GROUPED.match(s):
                raise ValueError(f"invalid monetary amount: {value!r}")
            s = s.replace(",", "")
        try:
            d = Decimal(s)
        except InvalidOperation:
            raise ValueError(f"invalid monetary amount: {value!r}")
    else:
        raise ValueError(f"invalid monetary amount: {value!r}")

    if not d.is_finite():
        raise ValueError(f"invalid monetary amount: {value!r}")
    return d


def quantize(value: Decimal) -> Decimal:
    """Round half-up to whole cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value) -> Decimal:
    """to_decimal() then quantize() to cents."""
    return quantize(to_decimal(value))


def money_str(value: Decimal | None) -> str | None:
    """Serialize for JSON as a fixed two-place string ("24.00")."""
    if value is None:
        return None
    return str(quantize(to_decimal(value)))
