"""Fixed-point SOL amounts.

Every monetary value in the ledger is a :class:`~decimal.Decimal` with nine
fractional digits (one lamport) and is persisted as TEXT. Token prices, and
market caps computed from them, are not monetary amounts and keep full
precision (see :func:`to_price`).
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any

from launchpad.core.constants import LAMPORTS_PER_SOL

LAMPORT = Decimal("0.000000001")
ZERO = Decimal("0")
MAX_SOL = Decimal("999999999999999999.999999999")


def to_sol(value: Any) -> Decimal:
    """Coerce ``value`` to a lamport-precision Decimal, truncating extra digits."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, float):
        # go through repr so 0.1 stays 0.1 and not its binary expansion
        dec = Decimal(repr(value))
    else:
        try:
            dec = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"not a number: {value!r}") from exc
    if not dec.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    quantized = dec.quantize(LAMPORT, rounding=ROUND_DOWN)
    if abs(quantized) > MAX_SOL:
        raise ValueError(f"amount out of range: {value!r}")
    return quantized


def to_db(value: Any) -> str:
    return format(to_sol(value), "f")


def from_db(value: Any) -> Decimal:
    return to_sol(value)


def lamports_to_sol(lamports: int) -> Decimal:
    return to_sol(Decimal(int(lamports)) / LAMPORTS_PER_SOL)


def sol_to_lamports(amount: Any) -> int:
    return int(to_sol(amount) * LAMPORTS_PER_SOL)


def percent_of(amount: Any, percent: Any) -> Decimal:
    """``amount × percent / 100`` rounded down to a lamport."""
    return to_sol(to_sol(amount) * Decimal(str(percent)) / Decimal(100))


def to_price(value: Any) -> Decimal:
    """Coerce a per-token price (or a value derived from one) without rounding.

    Prices routinely sit below one lamport, so they keep every digit given.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, float):
        dec = Decimal(repr(value))
    else:
        try:
            dec = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"not a number: {value!r}") from exc
    if not dec.is_finite():
        raise ValueError(f"not a finite price: {value!r}")
    return dec


def price_to_db(value: Any) -> str:
    return format(to_price(value), "f")


def price_from_db(value: Any) -> Decimal:
    return to_price(value)


__all__ = [
    "LAMPORT",
    "ZERO",
    "to_sol",
    "to_db",
    "from_db",
    "lamports_to_sol",
    "sol_to_lamports",
    "percent_of",
    "to_price",
    "price_to_db",
    "price_from_db",
]
