from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from launchpad.utils.time_utils import utc_now


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class Trade(BaseModel):
    """One executed swap. ``signature`` is unique and never re-inserted."""

    signature: str
    token_address: str
    trader: str
    side: TradeSide
    amount_sol: Decimal
    amount_tokens: int
    price: Decimal
    fee: Decimal = Decimal("0")
    created_at: datetime = Field(default_factory=utc_now)


__all__ = ["Trade", "TradeSide"]
