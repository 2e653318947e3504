"""
📁 Module: token.py
📌 Purpose: Token record, one row per launched asset, keyed by mint address.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from launchpad.utils.time_utils import utc_now


class CreatorType(str, Enum):
    HUMAN = "human"
    AGENT = "agent"


class Token(BaseModel):
    """🪙 A launched token as seen by the indexer."""

    address: str                                  # 🔑 Mint address, immutable
    name: str
    symbol: str
    creator: str                                  # 🌐 Creator wallet
    creator_type: CreatorType = CreatorType.HUMAN
    bonding_curve: Optional[str] = None
    current_price: Decimal = Decimal("0")
    market_cap: Decimal = Decimal("0")
    total_supply: Optional[int] = None
    volume_24h: Decimal = Decimal("0")
    graduated: bool = False
    graduated_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["Token", "CreatorType"]
